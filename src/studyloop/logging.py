"""Logging utilities.

構造化ログの初期化を一元化する。コアは I/O を持たないため、
状態遷移や永続化の失敗はここで設定した JSON ログとしてのみ外部に出る。
"""

from typing import Any

import logging
import structlog
from structlog import contextvars as structlog_contextvars
from .config import settings


_SESSION_CONTEXT_KEYS = ("session_id", "session_type")


def _merge_session_context(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Attach the live session id/type bound via contextvars.

    セッション中に出るログ（採点・保存失敗など）を後から突合できるよう、
    ContextVar に束縛済みの値だけを補う。明示的に渡された値は上書きしない。
    """

    context = structlog_contextvars.get_contextvars()
    for key in _SESSION_CONTEXT_KEYS:
        if key in context and key not in event_dict:
            event_dict[key] = context[key]
    return event_dict


def configure_logging() -> None:
    """Configure structlog for library-wide logging.

    標準 logging を設定値のレベルで初期化し、structlog で ISO タイムスタンプと
    JSON 形式の出力を有効化する。
    """
    # stdlib 側のプレフィックス（"INFO:logger:" など）を付けない
    logging.basicConfig(
        level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog_contextvars.merge_contextvars,
            _merge_session_context,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger()
