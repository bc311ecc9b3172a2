"""
Shared pytest fixtures:
- `kv`: a fresh store per test, parametrized over the memory and SQLite backends,
  with a "users" column family already created
- `spy`: wraps a store so tests can inspect the cursors it handed out
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

import pytest

from kvquery.db import MemoryKV, open_kv
from kvquery.db.kv import Entry


@pytest.fixture(params=["memory", "sqlite"])
def kv(request: pytest.FixtureRequest, tmp_path):
    if request.param == "memory":
        store = MemoryKV(column_families=["users"])
    else:
        store = open_kv(f"sqlite://{tmp_path}/kv.db", column_families=["users"])
    yield store
    store.close()


class SpyCursor:
    """Delegating cursor that records every key it reads."""

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.seen: List[bytes] = []

    def __enter__(self) -> "SpyCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def seek(self, key: bytes) -> None:
        self.inner.seek(key)

    def seek_to_first(self) -> None:
        self.inner.seek_to_first()

    def entry(self) -> Optional[Entry]:
        e = self.inner.entry()
        if e is not None:
            self.seen.append(e[0])
        return e

    def next(self) -> None:
        self.inner.next()

    def close(self) -> None:
        self.inner.close()

    @property
    def closed(self) -> bool:
        return self.inner.closed


class SpyKV:
    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.cursors: List[SpyCursor] = []

    def __getattr__(self, name: str) -> Any:
        return getattr(self.inner, name)

    def cursor(self, **kwargs: Any) -> SpyCursor:
        c = SpyCursor(self.inner.cursor(**kwargs))
        self.cursors.append(c)
        return c


@pytest.fixture
def spy(kv) -> SpyKV:
    return SpyKV(kv)


@pytest.fixture
def isolated_logger():
    """Yield a throwaway logger name and drop its handlers afterwards."""
    name = "kvquery.tests.isolated"
    yield name
    lg = logging.getLogger(name)
    for h in list(lg.handlers):
        lg.removeHandler(h)
