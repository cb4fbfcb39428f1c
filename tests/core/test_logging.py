# tests/core/test_logging.py
"""
Tests for the logging setup and the AUDIT level.
"""

import json
import logging

import pytest

from maintainer_api.core.logging_config import AUDIT_LEVEL, audit, get_logger, setup_logging


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def root_records(tmp_path):
    """Records reaching the root logger; restores level and handlers afterwards"""
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    recorder = RecordingHandler()

    def _setup(log_level):
        setup_logging(log_level, str(tmp_path), json_output=True)
        root.addHandler(recorder)
        return recorder.records

    yield _setup

    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestAuditLevel:
    """Audit entries have their own numeric level"""

    def test_level_is_registered_above_warning(self):
        assert logging.getLevelName(AUDIT_LEVEL) == "AUDIT"
        assert logging.WARNING < AUDIT_LEVEL < logging.ERROR

    def test_audit_survives_a_warning_threshold(self, root_records):
        records = root_records("WARNING")
        log = get_logger("maintainer_api.audit_check")

        audit(log, "colors_file_written", dye_count=3)
        log.info("ordinary_traffic")
        log.warning("some_warning")

        entries = [(r.levelname, json.loads(r.getMessage())) for r in records]
        assert [(name, entry["event"]) for name, entry in entries] == [
            ("AUDIT", "colors_file_written"),
            ("WARNING", "some_warning"),
        ]
        assert entries[0][1]["level"] == "audit"
        assert entries[0][1]["dye_count"] == 3

    def test_error_threshold_drops_audit(self, root_records):
        records = root_records("ERROR")
        audit(get_logger("maintainer_api.audit_check"), "session_created")
        assert records == []

    def test_bound_logger_keeps_audit(self, root_records):
        records = root_records("INFO")
        log = get_logger("maintainer_api.audit_check").bind(request_id="abcd")

        audit(log, "locale_file_written", locale="de")

        entry = json.loads(records[-1].getMessage())
        assert records[-1].levelno == AUDIT_LEVEL
        assert entry["request_id"] == "abcd"
        assert entry["logger"] == "maintainer_api.audit_check"
