"""Tests for logging setup helpers."""
import json
import logging

from utils.logging_config import (
    PIPELINE_LOGGERS,
    JsonFormatter,
    build_logging_config,
    log_with_context,
)


def test_console_only_by_default():
    config = build_logging_config()

    assert list(config['handlers']) == ['console']
    assert config['handlers']['console']['formatter'] == 'standard'
    assert config['loggers']['']['level'] == 'INFO'
    for name in PIPELINE_LOGGERS:
        assert config['loggers'][name]['propagate']


def test_debug_and_file_handlers(tmp_path):
    config = build_logging_config(log_dir=str(tmp_path), debug_mode=True, log_to_file=True, json_output=True)

    assert config['loggers']['']['level'] == 'DEBUG'
    assert config['handlers']['console']['formatter'] == 'json'
    assert config['loggers']['']['handlers'] == ['console', 'error_file', 'info_file']
    assert config['handlers']['error_file']['filename'].startswith(str(tmp_path))


def test_json_formatter_includes_context():
    record = logging.LogRecord('services.receipt_service', logging.INFO, __file__, 10,
                               'Processed receipt %s', ('r-1',), None)
    record.data = {'receipt_id': 'r-1', 'items': 3}
    record.threadName = 'ocr-variant_0'

    payload = json.loads(JsonFormatter().format(record))

    assert payload['message'] == 'Processed receipt r-1'
    assert payload['level'] == 'INFO'
    assert payload['logger'] == 'services.receipt_service'
    assert payload['receipt_id'] == 'r-1'
    assert payload['thread'] == 'ocr-variant_0'
    assert payload['data'] == {'receipt_id': 'r-1', 'items': 3}


def test_json_formatter_plain_record():
    record = logging.LogRecord('ocr', logging.WARNING, __file__, 1, 'variant failed', (), None)
    record.threadName = 'MainThread'

    payload = json.loads(JsonFormatter().format(record))

    assert set(payload) == {'timestamp', 'level', 'logger', 'message'}


def test_log_with_context_attaches_data(caplog):
    logger = logging.getLogger('services.test_context')

    with caplog.at_level(logging.INFO, logger='services.test_context'):
        log_with_context(logger, logging.INFO, 'Processed receipt', {'store': 'Carrefour'})

    assert caplog.records[-1].data == {'store': 'Carrefour'}
