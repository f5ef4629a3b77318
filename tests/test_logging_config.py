# tests/test_logging_config.py

import json
import logging

from overflow_encode.logging_config import StructuredFormatter, log_state_transition, log_transfer
from overflow_encode.storage import TransferStatus


def _record(logger_name="overflow_encode.test"):
    records = []

    class Collect(logging.Handler):
        def emit(self, record):
            records.append(record)

    logger = logging.getLogger(logger_name)
    handler = Collect()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    return logger, records, handler


def test_json_lines_carry_event_fields():
    logger, records, handler = _record()
    try:
        log_state_transition(logger, "job-1", "backup", "queued", "scheduled")
    finally:
        logger.removeHandler(handler)

    entry = json.loads(StructuredFormatter(request_id="abc123").format(records[0]))
    assert entry['event'] == 'job_state_changed'
    assert entry['region'] == 'backup'
    assert entry['current'] == 'scheduled'
    assert entry['request_id'] == 'abc123'
    assert entry['level'] == 'INFO'


def test_failed_transfer_logs_a_warning():
    logger, records, handler = _record("overflow_encode.test_transfer")
    try:
        log_transfer(logger, "primary-to-backup", TransferStatus(files_transferred=2, files_failed=1))
        log_transfer(logger, "primary-to-backup", TransferStatus(files_transferred=3))
    finally:
        logger.removeHandler(handler)

    assert [r.levelno for r in records] == [logging.WARNING, logging.INFO]
    assert records[0].extra_fields['files_failed'] == 1
