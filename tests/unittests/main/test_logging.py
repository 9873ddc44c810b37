import json
import logging
import sys

from autoclaim.main.config import get_loglevel
from autoclaim.main.logging import ContextJSONFormatter, SimpleLogger, get_logger
from autoclaim.main.session_context import (
    clear_session_context,
    get_session_context,
    set_session_context,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="autoclaim.worker.poll_loop",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Claimed clue %s",
        args=(7,),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_session_context():
    set_session_context(session_id="s-1", task_type="audittask")
    try:
        payload = json.loads(ContextJSONFormatter().format(make_record(clue_id=7)))
    finally:
        clear_session_context()

    assert payload["message"] == "Claimed clue 7"
    assert payload["level"] == "info"
    assert payload["session_id"] == "s-1"
    assert payload["task_type"] == "audittask"
    assert payload["clue_id"] == 7


def test_session_context_merge_and_clear():
    set_session_context(session_id="s-2")
    set_session_context(task_type="producetask")
    assert get_session_context() == {"session_id": "s-2", "task_type": "producetask"}

    set_session_context(task_type=None)
    assert get_session_context() == {"session_id": "s-2"}

    clear_session_context()
    assert get_session_context() == {}


def test_json_formatter_skips_empty_extras_and_keeps_exceptions():
    try:
        raise RuntimeError("claim failed")
    except RuntimeError:
        record = make_record(clue_id=None, page=2)
        record.exc_info = sys.exc_info()

    payload = json.loads(ContextJSONFormatter().format(record))

    assert "clue_id" not in payload
    assert payload["page"] == 2
    assert "RuntimeError: claim failed" in payload["exception"]


def test_get_logger_attaches_a_single_handler():
    logger = get_logger("autoclaim.tests.logging")

    assert isinstance(logger, SimpleLogger)
    assert len(logger.handlers) == 1
    assert logger.level == get_loglevel()
