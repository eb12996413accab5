"""Unit tests for the structured logging facade."""

import io
import json

import pytest
from flask import Flask, g

from logging_lib import (
    get_context,
    get_logger,
    get_memory_records,
    load_settings,
    logger_context,
    pop_context,
    push_context,
    scrub_identifier,
)
from logging_lib.config import LoggingSettings
from logging_lib.flask_ext import register_flask_context
from logging_lib.redaction import REDACTED, Redactor
from logging_lib.schema import build_log_record
from logging_lib.sinks import StdoutSink


@pytest.mark.logging
@pytest.mark.unit
class TestStructuredLogger:
    def test_record_shape(self, memory_logging):
        get_logger("tenancy.test").info("Identity provisioned", tenant_id="t1")

        (record,) = get_memory_records()
        assert record["message"] == "Identity provisioned"
        assert record["component"] == "tenancy.test"
        assert record["service"] == "logitrack-test"
        assert record["env"] == "test"
        assert record["level"] == "INFO"
        assert record["tenant_id"] == "t1"
        assert record["context"]["service"] == "logitrack-test"

    def test_level_threshold(self, memory_logging):
        memory_logging.configure(service="logitrack-test", env="test", sinks=("memory",), level="WARNING")
        logger = get_logger("tenancy.test")
        logger.info("dropped")
        logger.warning("kept")
        assert [r["message"] for r in get_memory_records()] == ["kept"]

    def test_context_merged(self, memory_logging):
        with logger_context(rid="r1"):
            get_logger("x").info("inside")
        get_logger("x").info("outside")

        inside, outside = get_memory_records()
        assert inside["context"]["rid"] == "r1"
        assert "rid" not in outside["context"]

    def test_push_pop(self, memory_logging):
        token = push_context(identity_hash="abc")
        assert get_context()["identity_hash"] == "abc"
        pop_context(token)
        assert "identity_hash" not in get_context()

    def test_sensitive_fields_redacted(self, memory_logging):
        get_logger("x").info("login", token="secret", extra={"password": "p"}, nested={"Authorization": "Bearer x"})
        (record,) = get_memory_records()
        assert record["token"] == REDACTED
        assert record["password"] == REDACTED
        assert record["nested"]["Authorization"] == REDACTED

    def test_exc_info_accepted(self, memory_logging):
        get_logger("x").error("failed", exc_info=True)
        assert "exc_info" not in get_memory_records()[0]


@pytest.mark.logging
@pytest.mark.unit
class TestLoggingHelpers:
    def test_scrub_identifier(self):
        hashed = scrub_identifier("user@example.com")
        assert len(hashed) == 12
        assert hashed == scrub_identifier("user@example.com")
        assert scrub_identifier(None) is None

    def test_redactor_case_insensitive(self):
        assert Redactor(["token"]).apply({"Token": "x", "ok": 1}) == {"Token": REDACTED, "ok": 1}

    def test_truncation(self):
        settings = LoggingSettings(max_field_length=5)
        record = build_log_record(level="INFO", message="m", settings=settings, component="c", blob="x" * 10)
        assert record["blob"] == "xxxxx..."

    def test_load_settings_from_env(self):
        settings = load_settings({"LOG_LEVEL": "debug", "LOG_SINKS": "memory,stdout", "LOG_SERVICE": "api"})
        assert settings.level == "DEBUG"
        assert settings.sinks == ("memory", "stdout")
        assert settings.service == "api"
        assert settings.allows("INFO")

    def test_stdout_sink_writes_json_lines(self):
        stream = io.StringIO()
        StdoutSink(stream).emit({"level": "INFO", "message": "m"})
        payload = json.loads(stream.getvalue())
        assert payload["severity"] == "INFO"


@pytest.mark.logging
@pytest.mark.unit
class TestFlaskIntegration:
    def test_request_logged_with_request_id(self, memory_logging):
        app = Flask(__name__)
        register_flask_context(app, service="api")

        @app.route("/ping")
        def ping():
            g.tenant_id = "t1"
            return "pong"

        resp = app.test_client().get("/ping", headers={"X-Request-ID": "rid-1"})

        assert resp.headers["X-Request-ID"] == "rid-1"
        http = [r for r in get_memory_records() if r["message"] == "http_request"]
        assert len(http) == 1
        assert http[0]["status"] == 200
        assert http[0]["tenant_id"] == "t1"
        assert http[0]["context"]["rid"] == "rid-1"

    def test_excluded_route_not_logged(self, memory_logging):
        app = Flask(__name__)
        register_flask_context(app)

        @app.route("/healthz")
        def healthz():
            return "ok"

        resp = app.test_client().get("/healthz")

        assert resp.headers["X-Request-ID"]
        assert [r for r in get_memory_records() if r["message"] == "http_request"] == []
