"""
Version helpers for kvquery.

Resolution order:
    1) KVQUERY_VERSION env var (authoritative override)
    2) installed distribution metadata
    3) DEFAULT_VERSION
"""

from __future__ import annotations

import os

DEFAULT_VERSION = "0.1.0"


def _detect() -> str:
    override = os.environ.get("KVQUERY_VERSION")
    if override:
        return override.strip()
    try:
        from importlib.metadata import PackageNotFoundError, version
    except ImportError:  # pragma: no cover
        return DEFAULT_VERSION
    try:
        return version("kvquery")
    except PackageNotFoundError:
        return DEFAULT_VERSION


__version__ = _detect()

__all__ = ["__version__", "DEFAULT_VERSION"]
