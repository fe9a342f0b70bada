from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional

from .backup import TransactionRepository
from .codec import decode_csv_report, encode_transactions_to_csv
from .logging_setup import get_logger
from .models import (
    CsvExportRequest,
    CsvExportResponse,
    CsvExportResult,
    CsvImportRequest,
    CsvImportResponse,
    CsvImportResult,
    Issue,
    ResponseLevel,
    Stats,
    TransactionRecord,
)
from .settings import Settings, get_settings

logger = get_logger(__name__)


class TransactionCsvError(Exception):
    """サービス層の独自例外の基底クラス"""

    code = "TRANSACTION_CSV_ERROR"
    status_code = 400


class InvalidBase64Error(TransactionCsvError):
    """Base64 デコード失敗時に投げる独自例外"""

    code = "INVALID_BASE64"
    status_code = 400


class PayloadTooLargeError(TransactionCsvError):
    """取り込み CSV が設定上限を超えた場合に投げる独自例外"""

    code = "PAYLOAD_TOO_LARGE"
    status_code = 413


# ---------------------------------------------------------------------------
# Base64 ユーティリティ
# ---------------------------------------------------------------------------


def _decode_base64_to_bytes(csv_b64: str) -> bytes:
    """Base64 -> bytes

    - 先に空白類（スペース・改行・タブなど）をすべて削除
    - そのうえで validate=True で厳密に Base64 を検証
    """
    try:
        compact = "".join(csv_b64.split())
        return base64.b64decode(compact, validate=True)
    except Exception as exc:  # noqa: BLE001
        raise InvalidBase64Error("csv_b64 is not valid Base64 UTF-8 text") from exc


def _bytes_to_text(raw: bytes) -> str:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidBase64Error("csv_b64 is not valid Base64 UTF-8 text") from exc
    # Excel 等で保存された BOM 付き CSV でもヘッダ判定できるようにする
    if text.startswith("\ufeff"):
        text = text[1:]
    return text


def _encode_text_to_base64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


# ---------------------------------------------------------------------------
# response_level による間引き
# ---------------------------------------------------------------------------


def _minimize_response(
    level: ResponseLevel,
    records: List[TransactionRecord],
    issues: List[Issue],
    stats: Stats,
    meta_full: Dict[str, Any],
) -> CsvImportResponse:
    """
    トップ構造 {result, meta} は維持しつつ、
    response_level に応じて result/meta の中身を最小化する。
    """

    meta_simple: Dict[str, Any] = {
        "version": meta_full.get("version"),
        "mode_used": meta_full.get("mode_used"),
        "imported": stats.accepted,
        "persisted": meta_full.get("persisted", False),
        "response_level_used": level.value,
    }

    if level == ResponseLevel.simple:
        result = CsvImportResult(transactions=records, issues=[], stats=None)
        return CsvImportResponse(result=result, meta=meta_simple)

    if level == ResponseLevel.standard:
        meta_standard: Dict[str, Any] = dict(meta_simple)
        meta_standard["skipped"] = stats.skipped
        result = CsvImportResult(transactions=records, issues=issues, stats=stats)
        return CsvImportResponse(result=result, meta=meta_standard)

    # debug: meta_full をそのまま返す
    meta_debug: Dict[str, Any] = dict(meta_full)
    meta_debug["response_level_used"] = level.value
    result = CsvImportResult(transactions=records, issues=issues, stats=stats)
    return CsvImportResponse(result=result, meta=meta_debug)


# ---------------------------------------------------------------------------
# API エントリーポイント
# ---------------------------------------------------------------------------


def export_csv(
    request: CsvExportRequest,
    settings: Optional[Settings] = None,
) -> CsvExportResponse:
    """取引レコード列をバックアップ CSV に変換する"""
    settings = settings or get_settings()

    csv_text = encode_transactions_to_csv(request.transactions)
    count = len(request.transactions)

    if request.as_b64:
        result = CsvExportResult(csv_b64=_encode_text_to_base64(csv_text), records=count)
    else:
        result = CsvExportResult(csv_text=csv_text, records=count)

    logger.info("export: %d records", count)
    return CsvExportResponse(
        result=result,
        meta={"version": settings.api_version, "mode_used": "export"},
    )


def import_csv(
    request: CsvImportRequest,
    repository: Optional[TransactionRepository] = None,
    settings: Optional[Settings] = None,
) -> CsvImportResponse:
    """バックアップ CSV 取り込みのメイン処理

    1) Base64 -> UTF-8（サイズ上限チェック込み）
    2) decode（不正な行はスキップし Issue に記録）
    3) persist 指定時はストアへ登録（1 件以上取り込めた場合のみ）
    """
    settings = settings or get_settings()

    raw = _decode_base64_to_bytes(request.csv_b64)
    if settings.max_import_bytes and len(raw) > settings.max_import_bytes:
        raise PayloadTooLargeError(
            f"CSV is {len(raw)} bytes; limit is {settings.max_import_bytes} bytes"
        )
    text = _bytes_to_text(raw)

    report = decode_csv_report(text)

    persisted = False
    if request.persist and repository is not None and report.records:
        repository.insert_transactions(report.records)
        persisted = True

    logger.info(
        "import: %d accepted, %d skipped (persisted=%s)",
        report.stats.accepted,
        report.stats.skipped,
        persisted,
    )

    meta_full: Dict[str, Any] = {
        "version": settings.api_version,
        "mode_used": "import",
        "persisted": persisted,
        "input_bytes": len(raw),
        "stats": report.stats.model_dump(),
    }

    level = request.response_level or settings.default_response_level
    return _minimize_response(
        level=level,
        records=report.records,
        issues=report.issues,
        stats=report.stats,
        meta_full=meta_full,
    )
