# src/fustor_fs_queue/common/logging_config.py

import logging
import logging.config
import os
import sys
from typing import Optional, Union


def setup_logging(
    log_directory: Optional[str] = None,
    base_logger_name: str = "fustor_fs_queue",
    level: Union[int, str] = logging.INFO,
    log_file_name: str = 'fs_queue.log',
    console_output: bool = True,
    json_format: bool = False,
):
    """
    Configure logging for the scheduler package.

    Args:
        log_directory: Directory for the rotating log files. When None, only
            the console handler is installed.
        base_logger_name: Logger that receives the handlers; every scheduler
            module logs below it.
        level: Minimum level for the package logger and its handlers.
        log_file_name: Name of the main log file inside log_directory.
        console_output: Whether to log to stdout with colors.
        json_format: Write the file handlers as JSON lines instead of plain text.
    """
    if isinstance(level, str):
        numeric_level = getattr(logging, level.upper(), logging.INFO)
    else:
        numeric_level = level

    file_formatter = 'json' if json_format else 'standard'

    LOGGING_CONFIG = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'color_console': {
                '()': 'colorlog.ColoredFormatter',
                'format': '%(log_color)s%(asctime)s - %(name)s - %(levelname)s - %(message)s%(reset)s',
                'datefmt': '%Y-%m-%d %H:%M:%S',
                'log_colors': {
                    'DEBUG':    'cyan',
                    'INFO':     'green',
                    'WARNING':  'yellow',
                    'ERROR':    'red',
                    'CRITICAL': 'bold_red',
                }
            },
            'json': {
                '()': 'pythonjsonlogger.jsonlogger.JsonFormatter',
                'format': '%(asctime)s %(levelname)s %(name)s %(message)s'
            }
        },
        'handlers': {},
        'loggers': {
            base_logger_name: {
                'handlers': [],
                'level': numeric_level,
                'propagate': False
            },
        },
    }

    handlers = LOGGING_CONFIG['handlers']
    package_handlers = LOGGING_CONFIG['loggers'][base_logger_name]['handlers']

    log_file_path = None
    if log_directory:
        os.makedirs(log_directory, exist_ok=True)
        log_file_path = os.path.join(log_directory, log_file_name)
        handlers['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'level': numeric_level,
            'formatter': file_formatter,
            'filename': log_file_path,
            'maxBytes': 10485760, # 10MB
            'backupCount': 5,
            'encoding': 'utf8'
        }
        handlers['error_file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'level': logging.ERROR,
            'formatter': file_formatter,
            'filename': os.path.join(log_directory, 'fs_queue_error.log'),
            'maxBytes': 10485760, # 10MB
            'backupCount': 2,
            'encoding': 'utf8'
        }
        package_handlers.extend(['file', 'error_file'])

    if console_output:
        handlers['console'] = {
            'class': 'logging.StreamHandler',
            'level': numeric_level,
            'formatter': 'color_console',
            'stream': sys.stdout
        }
        package_handlers.append('console')

    logging.config.dictConfig(LOGGING_CONFIG)

    # Only silence asyncio when not debugging the event loop itself
    if numeric_level > logging.DEBUG:
        logging.getLogger('asyncio').setLevel(logging.WARNING)

    main_logger = logging.getLogger(base_logger_name)
    main_logger.info(f"Logging configured successfully. Level: {logging.getLevelName(numeric_level)}")
    if log_file_path:
        main_logger.debug(f"Log file: {log_file_path}")
    return main_logger
