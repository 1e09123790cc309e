# utils/logging_config.py

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "picture_pruner"
CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'


def setup_logging(level: str = "INFO",
                  log_dir: Optional[str] = None,
                  console: bool = True) -> logging.Logger:
    """
    Configure the package logger

    Console output at `level`. With a log directory, also a rotating text
    log at DEBUG and a rotating JSON log for structured records.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    if console:
        # Console handler
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)

        # File handler (rotating)
        file_handler = logging.handlers.RotatingFileHandler(
            path / f"{LOGGER_NAME}.log",
            maxBytes=10*1024*1024,  # 10 MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

        # JSON handler for structured logs
        json_handler = logging.handlers.RotatingFileHandler(
            path / f"{LOGGER_NAME}_structured.json",
            maxBytes=10*1024*1024,
            backupCount=5
        )
        json_handler.setLevel(logging.INFO)
        json_handler.setFormatter(JSONFormatter())
        logger.addHandler(json_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger


def log_operation(logger: logging.Logger, operation: str, **fields):
    """Log structured operation data"""
    logger.info(operation, extra={'operation': operation, 'fields': fields})


class JSONFormatter(logging.Formatter):
    """Format logs as JSON"""

    def format(self, record):
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        operation = getattr(record, 'operation', None)
        if operation:
            log_data['operation'] = operation
            log_data.update(getattr(record, 'fields', {}))

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)
