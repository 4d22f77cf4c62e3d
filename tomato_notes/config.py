"""
環境変数による設定とログ設定
"""
import logging
import os

import structlog
from dotenv import load_dotenv

# 環境変数を読み込み
load_dotenv()

DB_PATH = os.getenv("TOMATO_NOTES_DB", "tomato_notes.db")
LOG_LEVEL = os.getenv("TOMATO_NOTES_LOG_LEVEL", "INFO").upper()
FLET_SERVER_PORT = int(os.getenv("FLET_SERVER_PORT", "8080"))
PORT = int(os.getenv("PORT", "8080"))
FLASK_DEBUG = os.getenv("FLASK_DEBUG", "false").lower() == "true"

_configured = False


def configure_logging(level: str = LOG_LEVEL) -> None:
    """structlogを初期化（何度呼んでも1回だけ）"""
    global _configured
    if _configured:
        return

    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True
