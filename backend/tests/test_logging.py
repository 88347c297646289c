import io
import json
import logging

from tickerfeed.common.logging import JsonFormatter, log, setup_logger


def _capture() -> tuple[io.StringIO, logging.Handler]:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())
    logging.getLogger("tickerfeed").addHandler(handler)
    return stream, handler


def test_log_lines_carry_component_context_and_fields() -> None:
    logger = setup_logger("unit", command="refresh")
    stream, handler = _capture()
    try:
        log(logger, logging.WARNING, "relay_attempt_failed", relay="jina", error=None)
    finally:
        logging.getLogger("tickerfeed").removeHandler(handler)

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    record = lines[-1]
    assert record["event"] == "relay_attempt_failed"
    assert record["level"] == "warning"
    assert record["component"] == "unit"
    assert record["command"] == "refresh"
    assert record["relay"] == "jina"
    assert "error" not in record
    assert record["run_id"]


def test_setup_logger_updates_bound_context() -> None:
    setup_logger("rebind", page="krypto.html")
    logger = setup_logger("rebind", page="indices.html")
    stream, handler = _capture()
    try:
        log(logger, logging.INFO, "page_state_changed")
    finally:
        logging.getLogger("tickerfeed").removeHandler(handler)

    record = json.loads(stream.getvalue().splitlines()[-1])
    assert record["page"] == "indices.html"
    assert len(logger.filters) == 1
