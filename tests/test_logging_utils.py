import io
import json
import logging

import pytest

from trading_dashboard.logging_utils import configure_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_records_are_json_lines_with_request_context() -> None:
    stream = io.StringIO()
    configure_logging("debug", stream=stream)

    logging.getLogger("trading_dashboard.client").warning(
        "GET /accounts answered 500",
        extra={"endpoint": "/accounts", "status_code": 500, "generation": 3, "symbol": "ignored"},
    )

    entry = json.loads(stream.getvalue())
    assert entry["level"] == "warning"
    assert entry["logger"] == "trading_dashboard.client"
    assert entry["message"] == "GET /accounts answered 500"
    assert entry["endpoint"] == "/accounts"
    assert entry["status_code"] == 500
    assert entry["generation"] == 3
    assert "symbol" not in entry
    assert entry["time"].endswith("+00:00")


def test_exceptions_are_included_and_transport_loggers_quieted() -> None:
    stream = io.StringIO()
    configure_logging("INFO", stream=stream)

    logging.getLogger("httpx").info("HTTP Request: GET /api/accounts")
    try:
        raise RuntimeError("store offline")
    except RuntimeError:
        logging.getLogger("trading_dashboard").exception("fetch failed", extra={"account_id": "desk/1"})

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["account_id"] == "desk/1"
    assert "RuntimeError: store offline" in entry["exception"]
