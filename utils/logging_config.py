"""Logging configuration for the receipt ingestion pipeline."""

import json
import logging.config
import os
from datetime import datetime
from typing import Any, Dict, Optional

PIPELINE_LOGGERS = ('ocr', 'parsers', 'services', 'storage', 'utils')


def build_logging_config(
    log_dir: str = 'logs',
    debug_mode: bool = False,
    log_to_file: bool = False,
    json_output: bool = False
) -> Dict[str, Any]:
    """
    Build the dictConfig mapping used by setup_logging.

    Args:
        log_dir: Directory to store log files
        debug_mode: Whether to enable debug logging
        log_to_file: Whether to add rotating file handlers
        json_output: Whether the console handler emits JSON lines
    """
    level = 'DEBUG' if debug_mode else 'INFO'

    config: Dict[str, Any] = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
            },
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s'
            },
            'json': {
                '()': 'utils.logging_config.JsonFormatter'
            }
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'level': level,
                'formatter': 'json' if json_output else 'standard',
                'stream': 'ext://sys.stderr'
            }
        },
        'loggers': {
            '': {
                'handlers': ['console'],
                'level': level,
            }
        }
    }

    # Pipeline packages log through the root handlers
    for name in PIPELINE_LOGGERS:
        config['loggers'][name] = {'level': level, 'propagate': True}

    if log_to_file:
        timestamp = datetime.now().strftime('%Y%m%d')
        config['handlers'].update({
            'error_file': {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': 'ERROR',
                'formatter': 'detailed',
                'filename': os.path.join(log_dir, f'error_{timestamp}.log'),
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5
            },
            'info_file': {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': 'INFO',
                'formatter': 'json',
                'filename': os.path.join(log_dir, f'receipts_{timestamp}.log'),
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5
            }
        })
        config['loggers']['']['handlers'].extend(['error_file', 'info_file'])

    return config


def setup_logging(
    log_dir: str = 'logs',
    debug_mode: bool = False,
    log_to_file: bool = False,
    json_output: bool = False
) -> None:
    """Apply the logging configuration for the application."""
    if log_to_file:
        os.makedirs(log_dir, exist_ok=True)

    logging.config.dictConfig(build_logging_config(log_dir, debug_mode, log_to_file, json_output))

    logger = logging.getLogger(__name__)
    logger.debug('Logging system initialized')


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Context attached with log_with_context goes under ``data``; a
    ``receipt_id`` in it is also lifted to the top level so log lines of one
    receipt can be grepped together. Records from OCR worker threads carry
    the thread name.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage()
        }

        if record.threadName and record.threadName != 'MainThread':
            entry['thread'] = record.threadName

        data = getattr(record, 'data', None)
        if data:
            if 'receipt_id' in data:
                entry['receipt_id'] = data['receipt_id']
            entry['data'] = data

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    context: Optional[Dict[str, Any]] = None,
    **kwargs
) -> None:
    """Log ``msg`` with ``context`` exposed as ``record.data``."""
    if context:
        kwargs.setdefault('extra', {})['data'] = context

    logger.log(level, msg, **kwargs)
