"""
kvquery configuration loader.

Layered config with clear precedence:
    1) Explicit overrides passed to `load()` (highest)
    2) Environment variables (KVQUERY_*)
    3) Config file (TOML or JSON)
    4) Built-in defaults (lowest)

Only store-facing concerns live here: which backend to open, which column
families must exist, and the default read/write options handed to the store.
The query layer itself never interprets these options.
"""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .db.kv import ReadOptions, WriteOptions
from .errors import ConfigError


DEFAULT_DB_URI = "memory://"

_URI_SCHEMES = ("memory://", "sqlite://", "rocksdb://")


def _parse_bool(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _split_list(v: str) -> List[str]:
    return [s.strip() for s in v.split(",") if s.strip()]


# ------------------------------
# Typed configuration model
# ------------------------------


@dataclass
class DBConfig:
    uri: str = DEFAULT_DB_URI
    create: bool = True
    readonly: bool = False
    column_families: List[str] = field(default_factory=list)
    fallback_to_sqlite: bool = True


@dataclass
class ReadConfig:
    fill_cache: bool = True
    verify_checksums: bool = False

    def to_options(self) -> ReadOptions:
        return ReadOptions(fill_cache=self.fill_cache, verify_checksums=self.verify_checksums)


@dataclass
class WriteConfig:
    sync: bool = False
    disable_wal: bool = False

    def to_options(self) -> WriteOptions:
        return WriteOptions(sync=self.sync, disable_wal=self.disable_wal)


@dataclass
class Config:
    db: DBConfig = field(default_factory=DBConfig)
    read: ReadConfig = field(default_factory=ReadConfig)
    write: WriteConfig = field(default_factory=WriteConfig)
    log_level: str = "INFO"
    log_format: str = ""  # "json" | "text" | "" (auto)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ------------------------------
# File loader (TOML / JSON)
# ------------------------------


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(str(path))
    suffix = path.suffix.lower()
    with path.open("rb") as f:
        if suffix in {".toml", ".tml"}:
            return tomllib.load(f)
        if suffix == ".json":
            return json.load(f)
    raise ConfigError(f"unsupported config format: {suffix}", path=str(path))


def _merge_dict(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Nested dict merge: values in b override a."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge_dict(out[k], v)
        else:
            out[k] = v
    return out


def _env_layer() -> Dict[str, Any]:
    env = os.environ
    out: Dict[str, Any] = {"db": {}, "read": {}, "write": {}}
    if "KVQUERY_DB_URI" in env:
        out["db"]["uri"] = env["KVQUERY_DB_URI"].strip()
    if "KVQUERY_DB_READONLY" in env:
        out["db"]["readonly"] = _parse_bool(env["KVQUERY_DB_READONLY"])
    if "KVQUERY_COLUMN_FAMILIES" in env:
        out["db"]["column_families"] = _split_list(env["KVQUERY_COLUMN_FAMILIES"])
    if "KVQUERY_FILL_CACHE" in env:
        out["read"]["fill_cache"] = _parse_bool(env["KVQUERY_FILL_CACHE"])
    if "KVQUERY_VERIFY_CHECKSUMS" in env:
        out["read"]["verify_checksums"] = _parse_bool(env["KVQUERY_VERIFY_CHECKSUMS"])
    if "KVQUERY_SYNC" in env:
        out["write"]["sync"] = _parse_bool(env["KVQUERY_SYNC"])
    if "KVQUERY_DISABLE_WAL" in env:
        out["write"]["disable_wal"] = _parse_bool(env["KVQUERY_DISABLE_WAL"])
    if "KVQUERY_LOG_LEVEL" in env:
        out["log_level"] = env["KVQUERY_LOG_LEVEL"].strip().upper()
    if "KVQUERY_LOG_FORMAT" in env:
        out["log_format"] = env["KVQUERY_LOG_FORMAT"].strip().lower()
    return out


# ------------------------------
# Main loader
# ------------------------------


def load(config_file: Optional[str | Path] = None, **overrides: Any) -> Config:
    """
    Load configuration.

    Precedence: overrides > env > file > defaults.

    The file may contain:
        db:    { uri, create, readonly, column_families, fallback_to_sqlite }
        read:  { fill_cache, verify_checksums }
        write: { sync, disable_wal }
        log_level, log_format

    Overrides use the same shape, e.g. ``load(db={"uri": "sqlite:///x.db"})``.
    """
    base = Config().to_dict()

    if config_file:
        base = _merge_dict(base, _load_file(Path(config_file).expanduser()))
    base = _merge_dict(base, _env_layer())
    if overrides:
        base = _merge_dict(base, overrides)

    try:
        cfg = Config(
            db=DBConfig(
                uri=str(base["db"]["uri"]),
                create=bool(base["db"]["create"]),
                readonly=bool(base["db"]["readonly"]),
                column_families=list(base["db"]["column_families"] or []),
                fallback_to_sqlite=bool(base["db"]["fallback_to_sqlite"]),
            ),
            read=ReadConfig(**base["read"]),
            write=WriteConfig(**base["write"]),
            log_level=str(base["log_level"]),
            log_format=str(base["log_format"] or ""),
        )
    except (KeyError, TypeError) as e:
        raise ConfigError(f"malformed configuration: {e}") from e

    _validate(cfg)
    return cfg


def _validate(cfg: Config) -> None:
    if not cfg.db.uri.startswith(_URI_SCHEMES):
        raise ConfigError(
            "unsupported DB URI; use memory://, sqlite:///path or rocksdb:///path",
            uri=cfg.db.uri,
        )
    if cfg.log_format not in ("", "json", "text"):
        raise ConfigError("log_format must be 'json' or 'text'", log_format=cfg.log_format)
    for name in cfg.db.column_families:
        if not name or name == "default":
            raise ConfigError("invalid column family name", cf=name)


__all__ = ["Config", "DBConfig", "ReadConfig", "WriteConfig", "load", "DEFAULT_DB_URI"]
