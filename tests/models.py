"""Key/value types shared by the test-suite."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from kvquery.types import KeyValue, Record, StructKey


@dataclass(frozen=True)
class User(Record):
    name: str
    age: int


@dataclass(frozen=True)
class UserKey(StructKey[User], prefix="u"):
    team: str
    uid: Optional[int] = None


@dataclass(frozen=True)
class TeamKey(StructKey[User], prefix="t"):
    team: str
    uid: int | None = None


@dataclass(frozen=True)
class Name(KeyValue[str]):
    """Raw UTF-8 key without namespace, so tests can reason about exact bytes."""

    text: str

    def to_bytes(self) -> bytes:
        return self.text.encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Name":
        return cls(data.decode("utf-8"))


@dataclass(frozen=True)
class Counter(StructKey, prefix="c", value=int):
    name: str
