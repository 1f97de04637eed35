"""
Logging setup shared by the web app, the RQ worker and the refresh script.

LOG_FORMAT=json emits one JSON object per line; anything else is plain text.
LOG_LEVEL sets the root level and LOG_LEVELS takes per-logger overrides,
e.g. "services.benchmarks=DEBUG,jobs=WARNING".
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Passed through logger calls as extra={...}; copied into JSON output when set
CONTEXT_FIELDS = ('tenant', 'segment', 'job_id')

QUIET_LOGGERS = [
    'anthropic',
    'httpcore',
    'httpx',
    'urllib3',
    'rq.worker',
    'sqlalchemy.engine',
]

TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'


class JSONFormatter(logging.Formatter):

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def parse_level(name, default=logging.INFO):
    level = logging.getLevelName((name or '').strip().upper())
    return level if isinstance(level, int) else default


def parse_overrides(value):
    """'a=DEBUG,b=warning' -> {'a': 10, 'b': 30}. Malformed entries are skipped."""
    overrides = {}
    for item in (value or '').split(','):
        logger_name, sep, level_name = item.partition('=')
        if not sep or not logger_name.strip():
            continue
        level = parse_level(level_name, default=None)
        if level is not None:
            overrides[logger_name.strip()] = level
    return overrides


def configure_logging(app=None):
    """Install a single stderr handler on the root logger. Safe to call repeatedly."""
    level = parse_level(os.getenv('LOG_LEVEL', 'INFO'))

    handler = logging.StreamHandler(sys.stderr)
    if os.getenv('LOG_FORMAT', 'text').lower() == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    for name, override in parse_overrides(os.getenv('LOG_LEVELS')).items():
        logging.getLogger(name).setLevel(override)

    if app is not None:
        app.logger.setLevel(level)
