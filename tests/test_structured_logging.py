"""Structured logger fields and JSON log setup."""

import json
import logging

from traipulse.structured_logging import StructuredLogger, setup_json_logging


def test_extra_fields_and_trace_context(caplog):
    log = StructuredLogger("traipulse.test")
    log.set_trace_context("refresh-1", user_id="local", surface="dashboard")

    with caplog.at_level(logging.INFO, logger="traipulse.test"):
        log.info("hello", candidate_count=4)

    record = caplog.records[-1]
    assert record.trace_id == "refresh-1"
    assert record.surface == "dashboard"
    assert record.candidate_count == 4

    log.clear_context()
    assert log.trace_context == {}


def test_policy_decision_levels(caplog):
    log = StructuredLogger("traipulse.test.policy")

    with caplog.at_level(logging.DEBUG, logger="traipulse.test.policy"):
        log.log_policy_decision("pass", "coach_note")
        log.log_policy_decision("downgrade_cooldown", "coach_note", proposal_id="p1")

    passed, downgraded = caplog.records[-2:]
    assert passed.levelno == logging.DEBUG
    assert downgraded.levelno == logging.INFO
    assert downgraded.decision == "downgrade_cooldown"
    assert downgraded.proposal_id == "p1"


def test_setup_json_logging_writes_json_lines(tmp_path):
    log_file = tmp_path / "logs" / "pulse.jsonl"
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level

    try:
        setup_json_logging(str(log_file), level="info")
        StructuredLogger("traipulse.test.json").info("brief ready", phase="on_track")
        for handler in root.handlers:
            handler.flush()

        lines = log_file.read_text().strip().splitlines()
        entry = json.loads(lines[-1])
        assert entry["message"] == "brief ready"
        assert entry["phase"] == "on_track"
        assert entry["levelname"] == "INFO"
    finally:
        for handler in root.handlers[len(before):]:
            root.removeHandler(handler)
            handler.close()
        root.setLevel(level)
