"""Tests for structured logging and the error envelope."""

from __future__ import annotations

import contextvars
import json
import logging

from bucketview.config import Config
from bucketview.errors import ERROR_STATUS_MAP, BucketViewError, ErrorCode, ErrorResponse
from bucketview.logging_setup import StructuredFormatter, bind_request, redact, setup_logging


def _record(msg: str = "hello %s", args=("world",)) -> logging.LogRecord:
    return logging.LogRecord("bucketview.test", logging.INFO, __file__, 1, msg, args, None)


def _handler_for(fmt: str) -> logging.Handler:
    config = Config()
    config.logging.format = fmt
    config.logging.level = "info"
    setup_logging(config)
    return logging.getLogger().handlers[0]


def _render_inside_request(handler: logging.Handler) -> str:
    def render() -> str:
        bind_request("cid-1", "DELETE", "/api/folders/docs")
        record = _record()
        assert handler.filter(record)
        return handler.format(record)

    # fresh context so the bound request does not leak into other tests
    return contextvars.copy_context().run(render)


def test_structured_formatter_emits_json():
    payload = json.loads(StructuredFormatter().format(_record()))
    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "bucketview.test"
    assert "correlation_id" not in payload
    assert "path" not in payload


def test_json_lines_carry_request_fields():
    payload = json.loads(_render_inside_request(_handler_for("json")))
    assert payload["correlation_id"] == "cid-1"
    assert payload["method"] == "DELETE"
    assert payload["path"] == "/api/folders/docs"


def test_text_lines_carry_request_suffix():
    line = _render_inside_request(_handler_for("text"))
    assert line.endswith("bucketview.test: hello world [cid-1 DELETE /api/folders/docs]")


def test_text_lines_outside_request_have_no_suffix():
    handler = _handler_for("text")
    record = _record()
    handler.filter(record)
    assert handler.format(record).endswith("bucketview.test: hello world")


def test_setup_logging_json():
    handler = _handler_for("json")
    root = logging.getLogger()
    assert root.level == logging.INFO
    assert root.handlers == [handler]
    assert isinstance(handler.formatter, StructuredFormatter)
    assert logging.getLogger("botocore").level == logging.WARNING


def test_setup_logging_unknown_level_falls_back_to_warning():
    config = Config()
    config.logging.level = "chatty"
    setup_logging(config)
    assert logging.getLogger().level == logging.WARNING


def test_redact():
    assert redact(None) == "-"
    assert redact("") == "-"
    assert redact("abcdefghijklmnop") == "abcdefgh…"


def test_error_defaults_to_mapped_status():
    assert BucketViewError(ErrorCode.DOMAIN_RESTRICTED, "x").status_code == 403
    assert BucketViewError(ErrorCode.CONTENT_TOO_LARGE, "x").status_code == 413
    assert BucketViewError(ErrorCode.INVALID_REQUEST, "x", status_code=409).status_code == 409


def test_every_code_has_a_status():
    assert set(ERROR_STATUS_MAP) == set(ErrorCode)


def test_error_response_envelope():
    err = BucketViewError(ErrorCode.SESSION_EXPIRED, "Session expired", details={"hint": "log in"})
    assert ErrorResponse.from_error(err).model_dump() == {
        "error": "Session expired",
        "code": "SESSION_EXPIRED",
        "details": {"hint": "log in"},
    }
    assert ErrorResponse.internal("Error: boom").model_dump() == {
        "error": "Error: boom",
        "code": "INTERNAL_ERROR",
        "details": {},
    }
