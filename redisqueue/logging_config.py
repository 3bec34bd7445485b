"""
Logging configuration for the redisqueue command-line tool
"""

import logging
from typing import Any, Dict


class QueueCommandFilter(logging.Filter):
    """Filter to suppress per-command DEBUG records unless explicitly wanted."""

    def __init__(self, show_commands: bool = False):
        super().__init__()
        self.show_commands = show_commands

    def filter(self, record: logging.LogRecord) -> bool:
        """Drop DEBUG records from the queue logger (one per Redis command)."""
        if self.show_commands:
            return True
        if record.name == "redisqueue.queue" and record.levelno == logging.DEBUG:
            return False
        return True


def get_logging_config(level: str = "INFO", show_commands: bool = False) -> Dict[str, Any]:
    """Get logging configuration for the redisqueue loggers."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "queue_command_filter": {
                "()": QueueCommandFilter,
                "show_commands": show_commands,
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
                "filters": ["queue_command_filter"],
            },
        },
        "loggers": {
            "redisqueue": {
                "handlers": ["default"],
                "level": level.upper(),
                "propagate": False
            },
        },
        "root": {
            "level": "WARNING",
            "handlers": ["default"]
        }
    }
