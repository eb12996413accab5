"""Nox sessions orchestrating LogiTrack unit suites."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import nox


PYTHON_VERSIONS = ["3.11"]
PROJECT_ROOT = Path(__file__).parent

nox.options.sessions = [
    "tests_unit_api",
    "tests_unit_auth",
    "tests_unit_orders",
    "tests_unit_logging",
]


def _install_test_requirements(session: nox.Session) -> None:
    """Install the project and its testing toolchain inside the session environment."""

    session.install("-e", ".[test]")


def _normalize_pythonpath(existing: str | None) -> str:
    parts = [str(PROJECT_ROOT)]
    if existing:
        parts.append(existing)
    return ":".join(part for part in parts if part)


def _build_env(session: nox.Session) -> dict[str, str]:
    env = dict(session.env)
    env["PYTHONPATH"] = _normalize_pythonpath(env.get("PYTHONPATH"))
    env["COVERAGE_FILE"] = str(PROJECT_ROOT / f".coverage.{session.name}")
    return env


def _run_suite(session: nox.Session, marker: str, targets: Iterable[str]) -> None:
    _install_test_requirements(session)

    env = _build_env(session)
    args = ["coverage", "run", f"--context={marker}", "-m", "pytest", "-m", marker, *targets]
    args.extend(session.posargs)

    session.log("Running %s suite: %s", marker, " ".join(args))
    session.run(*args, env=env)
    session.run("coverage", "report", "--show-missing", env=env)


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_api)")
def tests_unit_api(session: nox.Session) -> None:
    """Execute HTTP surface suites."""

    _run_suite(session, "api", ["tests/unit/api"])


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_auth)")
def tests_unit_auth(session: nox.Session) -> None:
    """Execute identity, provisioning and tenancy suites (record store included)."""

    _run_suite(session, "auth", ["tests/unit/auth", "tests/unit/db", "tests/unit/platform"])


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_orders)")
def tests_unit_orders(session: nox.Session) -> None:
    """Execute order lifecycle suites."""

    _run_suite(session, "orders", ["tests/unit/orders"])


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_logging)")
def tests_unit_logging(session: nox.Session) -> None:
    """Execute logging library suites."""

    _run_suite(session, "logging", ["tests/unit/logging"])
