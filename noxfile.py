"""
Nox sessions for kvquery.

Sessions:
  - lint  : ruff + black + mypy over the package and tests
  - unit  : the test-suite (memory + SQLite backends, hypothesis properties)
  - rocks : the test-suite with python-rocksdb installed

Pass extra args to pytest like:
  nox -s unit -- -k "scan and not rocks" -vv
"""

from __future__ import annotations

import nox

nox.options.reuse_venv = True
nox.options.stop_on_first_error = False

PY_PATHS = ["kvquery", "tests"]
TEST_PYTHONS = ["3.11", "3.12"]


@nox.session(name="lint", python="3.11")
def lint(session: nox.Session) -> None:
    """Static analysis: ruff, black (check), mypy."""
    session.install("-e", ".[dev]")
    session.run("ruff", "check", *PY_PATHS)
    session.run("black", "--check", *PY_PATHS)
    session.run("mypy", "--pretty", "--show-error-codes", "--ignore-missing-imports", "kvquery")


@nox.session(name="unit", python=TEST_PYTHONS)
def unit(session: nox.Session) -> None:
    session.env.setdefault("PYTHONUNBUFFERED", "1")
    session.install("-e", ".[test]")
    session.run("pytest", *session.posargs)


@nox.session(name="rocks", python="3.11")
def rocks(session: nox.Session) -> None:
    """Needs librocksdb headers on the host."""
    session.install("-e", ".[test,rocksdb]")
    session.run("pytest", "tests/unit/test_rocksdb.py", "tests/unit/test_backends.py", *session.posargs)
