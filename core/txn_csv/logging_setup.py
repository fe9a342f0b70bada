"""
core.txn_csv パッケージのロギング設定。

ライブラリ側のモジュールは get_logger() でロガーを取得するだけで、
ハンドラの追加は FastAPI アプリ / Lambda ハンドラなどの入口で
configure_logging() を 1 回呼んで行う。
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Optional, Union

PACKAGE_LOGGER = "core.txn_csv"
LEVEL_ENV = "TXN_CSV_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_stream_handler: Optional[logging.Handler] = None


def _resolve_level(level: Union[int, str, None]) -> int:
    """int / レベル名 / 数値文字列をログレベルに変換する

    None の場合は環境変数 TXN_CSV_LOG_LEVEL を見る。解釈できなければ INFO。
    """
    if level is None:
        level = os.getenv(LEVEL_ENV, "")
    if isinstance(level, int):
        return level

    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    # getLevelName は既知のレベル名に対しては数値を返す
    resolved = logging.getLevelName(name) if name else None
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: Union[int, str, None] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """パッケージのルートロガーに StreamHandler を 1 つだけ付ける

    2 回目以降の呼び出しではハンドラを追加せず、レベルだけ更新する。
    """
    global _stream_handler

    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    resolved = _resolve_level(level)

    if _stream_handler is None:
        for h in [h for h in pkg_logger.handlers if isinstance(h, logging.NullHandler)]:
            pkg_logger.removeHandler(h)
        _stream_handler = logging.StreamHandler(stream or sys.stderr)
        _stream_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        pkg_logger.addHandler(_stream_handler)
        # ルートロガー側で二重に出力しない
        pkg_logger.propagate = False

    _stream_handler.setLevel(resolved)
    pkg_logger.setLevel(resolved)
    return pkg_logger


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    if _stream_handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
