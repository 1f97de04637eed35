"""Tests for structured logging configuration."""
import json
import logging
import os
from unittest.mock import patch

import pytest

from creator_insights.logging_config import (
    JSONFormatter, configure_logging, parse_level, parse_overrides,
)


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Reset root logger state after each test."""
    root = logging.getLogger()
    original_level = root.level
    original_handlers = root.handlers[:]
    yield
    root.setLevel(original_level)
    root.handlers = original_handlers


class TestConfigureLogging:

    def test_default_level_is_info(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('LOG_LEVEL', None)
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_log_level_case_insensitive(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'debug'}):
            configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_log_level_defaults_to_info(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'NONSENSE'}):
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_text_format(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'text'}):
            configure_logging()
        logging.getLogger('services.benchmarks').info("refresh done")
        output = capsys.readouterr().err
        assert 'services.benchmarks: refresh done' in output
        assert 'INFO' in output

    def test_json_format_with_context(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        logging.getLogger('services.tenant_data').info("loaded", extra={'tenant': 'usr_1'})
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['logger'] == 'services.tenant_data'
        assert parsed['message'] == 'loaded'
        assert parsed['tenant'] == 'usr_1'
        assert 'segment' not in parsed

    def test_json_format_includes_exception(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        try:
            raise ValueError("boom")
        except ValueError:
            logging.getLogger('jobs').error("failed", exc_info=True)
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['level'] == 'ERROR'
        assert 'ValueError' in parsed['exception']

    def test_third_party_loggers_quieted(self):
        configure_logging()
        for name in ['anthropic', 'httpx', 'urllib3', 'rq.worker']:
            assert logging.getLogger(name).level == logging.WARNING

    def test_per_logger_overrides(self):
        with patch.dict(os.environ, {'LOG_LEVELS': 'services.llm=DEBUG,bogus,jobs=nope'}):
            configure_logging()
        assert logging.getLogger('services.llm').level == logging.DEBUG
        logging.getLogger('services.llm').setLevel(logging.NOTSET)

    def test_no_duplicate_handlers_on_repeated_calls(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1


class TestParsers:

    def test_parse_level(self):
        assert parse_level('warning') == logging.WARNING
        assert parse_level('') == logging.INFO
        assert parse_level('loud', default=None) is None

    def test_parse_overrides(self):
        assert parse_overrides('a=DEBUG, b = error ,=INFO,c') == {'a': logging.DEBUG, 'b': logging.ERROR}
        assert parse_overrides(None) == {}


def test_formatter_basic_record():
    record = logging.LogRecord(
        name='test', level=logging.INFO, pathname='', lineno=0,
        msg='hello %s', args=('world',), exc_info=None,
    )
    parsed = json.loads(JSONFormatter().format(record))
    assert parsed['message'] == 'hello world'
    assert parsed['level'] == 'INFO'
