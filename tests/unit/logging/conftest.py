"""Fixtures for logging library unit tests."""

from __future__ import annotations

import pytest

import logging_lib
from logging_lib import clear_context, reset_loggers


@pytest.fixture
def memory_logging():
    """Route records to the memory sink for the duration of a test."""

    reset_loggers()
    clear_context()
    logging_lib.configure(service="logitrack-test", env="test", sinks=("memory",), level="DEBUG")
    yield logging_lib
    reset_loggers()
    clear_context()
    logging_lib.configure(sinks=("stdout",), level="INFO")
