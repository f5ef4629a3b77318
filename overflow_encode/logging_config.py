#!/usr/bin/env python3
"""
Logging configuration for the overflow encoder
Text or JSON lines on stdout, tagged with the encode request id
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

NOISY_LOGGERS = ('botocore', 'boto3', 's3transfer', 'urllib3')
TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, event fields merged in at the top level"""

    def __init__(self, request_id: Optional[str] = None):
        super().__init__()
        self.request_id = request_id

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'ts': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'msg': record.getMessage(),
        }
        if self.request_id:
            entry['request_id'] = self.request_id

        entry.update(getattr(record, 'extra_fields', {}))
        if record.exc_info:
            entry['exc'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(
    level: Optional[str] = None,
    format_type: Optional[str] = None,
    request_id: Optional[str] = None,
) -> logging.Logger:
    """
    Route every log record to stdout

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL, LOG_LEVEL when omitted
        format_type: text or json, LOG_FORMAT when omitted
        request_id: tags every line so concurrent runs can be told apart
    """
    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    use_json = (format_type or os.getenv('LOG_FORMAT', 'text')).lower() == 'json'
    if use_json:
        formatter = StructuredFormatter(request_id)
    else:
        prefix = f'[REQ:{request_id}] ' if request_id else ''
        formatter = logging.Formatter(prefix + TEXT_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    # Replace whatever an earlier call or the host installed
    root.handlers = [handler]
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING)

    package_logger = logging.getLogger('overflow_encode')
    package_logger.setLevel(numeric_level)
    return package_logger


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    region: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
):
    """Log an event, carrying its fields for the JSON formatter"""
    fields = dict(extra or {})
    if region:
        fields['region'] = region
    logger.log(logging.getLevelName(level.upper()), message, extra={'extra_fields': fields})


def log_route_decision(logger: logging.Logger, pending: int, threshold: int, route: str):
    fields = {'event': 'route_decision', 'pending': pending, 'threshold': threshold, 'route': route}
    log_with_context(logger, 'INFO',
                     f"Primary queue has {pending} pending jobs (threshold {threshold}): routing to {route}",
                     extra=fields)


def log_state_transition(logger: logging.Logger, job_id: str, region: str, previous: str, current: str):
    fields = {'event': 'job_state_changed', 'job_id': job_id, 'previous': previous, 'current': current}
    log_with_context(logger, 'INFO', f"Job {job_id} state changed: {previous} -> {current}", region, fields)


def log_transfer(logger: logging.Logger, direction: str, status, metadata: Optional[Dict[str, Any]] = None):
    """Finished bundle copy; WARNING when anything was skipped or failed"""
    fields = {
        'event': 'bundle_copy',
        'direction': direction,
        'bytes_transferred': status.bytes_transferred,
        'files_transferred': status.files_transferred,
        'files_skipped': status.files_skipped,
        'files_failed': status.files_failed,
        'elapsed_seconds': status.elapsed_seconds,
        **(metadata or {}),
    }
    level = 'WARNING' if status.files_failed or status.files_skipped else 'INFO'
    log_with_context(logger, level, f"Copy {direction}: {status}", extra=fields)


def log_cleanup(logger: logging.Logger, region: str, resource: str, resource_id: str, success: bool,
                error: Optional[str] = None):
    fields = {'event': 'cleanup', 'resource': resource, 'resource_id': resource_id, 'success': success}
    if success:
        log_with_context(logger, 'INFO', f"Deleted {resource} {resource_id}", region, fields)
        return
    fields['error'] = error
    log_with_context(logger, 'WARNING', f"Cleanup of {resource} {resource_id} failed: {error}", region, fields)
