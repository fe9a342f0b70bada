from __future__ import annotations

import datetime as dt
import math
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional

from pydantic import ValidationError

from .logging_setup import get_logger
from .models import DecodeReport, Issue, Stats, TransactionRecord, TransactionType

logger = get_logger(__name__)

HEADER = "id,title,description,amount,type,date,categoryId"
HEADER_PREFIX = "id,title"
HEADER_TERMINATOR = "\n"
ROW_TERMINATOR = "\r\n"
NULL_SENTINEL = "null"
MIN_FIELDS = 6

_LINE_BREAK = re.compile(r"\r\n|\n|\r")
_ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
# JVM の Double.valueOf が受け付ける 10 進表記（16 進表記は対象外）
_JVM_DECIMAL = re.compile(
    r"[+-]?(?:NaN|Infinity|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?[fFdD]?)"
)
_JVM_TRIM = "".join(chr(c) for c in range(0x21))


# ---------------------------------------------------------------------------
# 数値の文字列化 / 解析
# ---------------------------------------------------------------------------


def format_amount(value: float) -> str:
    """金額を JVM の Double.toString と同じ規則で文字列化する

    - 1e-3 <= |v| < 1e7 : 最短表現の 10 進表記（整数値でも ".0" を残す）
    - それ以外          : "1.0E7" / "1.234E-5" 形式の指数表記
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0.0:
        return "-0.0" if math.copysign(1.0, value) < 0 else "0.0"

    if 1e-3 <= abs(value) < 1e7:
        # この範囲の repr は常に固定小数点表記
        return repr(value)

    sign, digits_tuple, exponent = Decimal(repr(value)).as_tuple()
    digits = list(digits_tuple)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    sci_exponent = exponent + len(digits) - 1
    head = str(digits[0])
    tail = "".join(str(d) for d in digits[1:]) or "0"
    return f"{'-' if sign else ''}{head}.{tail}E{sci_exponent}"


def parse_amount(text: str) -> float:
    """金額フィールドを解析する。解析できない場合は 0.0 を返す（行は落とさない）"""
    candidate = text.strip(_JVM_TRIM)
    if not _JVM_DECIMAL.fullmatch(candidate):
        return 0.0
    if candidate[-1] in "fFdD":
        candidate = candidate[:-1]
    return float(candidate)


def _parse_date(text: str) -> Optional[dt.date]:
    if not _ISO_DATE.fullmatch(text):
        return None
    try:
        return dt.date.fromisoformat(text)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# 行分割 / エスケープ
# ---------------------------------------------------------------------------


def split_csv_line(line: str) -> List[str]:
    """クォートを考慮して 1 行をフィールドに分割する

    - '"' でクォート内/外を切り替える。クォート内の '""' はリテラル '"' 1 文字
    - クォート外の ',' でフィールドを区切る
    - 閉じられていないクォートはエラーにせず、行末までクォート内として扱う
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False

    i = 0
    length = len(line)
    while i < length:
        c = line[i]
        if c == '"':
            if in_quotes and i + 1 < length and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif c == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(c)
        i += 1

    fields.append("".join(current))
    return fields


def escape_csv_field(value: str) -> str:
    """',' '"' 改行を含む値だけをクォートし、内部の '"' を '""' にする"""
    if "," in value or '"' in value or "\n" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------


def _encode_row(record: TransactionRecord) -> str:
    category = record.category_id if record.category_id is not None else NULL_SENTINEL
    return ",".join(
        [
            escape_csv_field(record.id),
            escape_csv_field(record.title),
            escape_csv_field(record.description),
            format_amount(record.amount),
            record.type.value,
            record.date.isoformat(),
            escape_csv_field(category),
        ]
    )


def encode_transactions_to_csv(transactions: Iterable[TransactionRecord]) -> str:
    """取引レコード列をバックアップ CSV テキストに変換する

    ヘッダ行は LF、データ行は CRLF で終端する。空の入力ではヘッダ行のみ。
    """
    parts = [HEADER, HEADER_TERMINATOR]
    for record in transactions:
        parts.append(_encode_row(record))
        parts.append(ROW_TERMINATOR)
    return "".join(parts)


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RowResult:
    """1 行分の変換結果。record か error のどちらか一方だけが入る。"""

    row: int
    record: Optional[TransactionRecord] = None
    error: Optional[str] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.record is not None


def _convert_row(row: int, line: str) -> RowResult:
    fields = split_csv_line(line)
    if len(fields) < MIN_FIELDS:
        return RowResult(
            row=row,
            error="ROW_TOO_FEW_FIELDS",
            detail=f"Row has {len(fields)} fields (at least {MIN_FIELDS} required).",
        )

    tx_type = TransactionType.__members__.get(fields[4])
    if tx_type is None:
        return RowResult(
            row=row,
            error="ROW_UNKNOWN_TYPE",
            detail=f"Unknown transaction type {fields[4]!r}.",
        )

    date = _parse_date(fields[5])
    if date is None:
        return RowResult(
            row=row,
            error="ROW_INVALID_DATE",
            detail=f"Invalid date {fields[5]!r} (expected YYYY-MM-DD).",
        )

    category_raw = fields[6] if len(fields) > 6 else None
    if category_raw is None or category_raw == NULL_SENTINEL or not category_raw.strip():
        category_id = None
    else:
        category_id = category_raw

    try:
        record = TransactionRecord(
            id=fields[0],
            title=fields[1],
            description=fields[2],
            amount=parse_amount(fields[3]),
            type=tx_type,
            date=date,
            category_id=category_id,
        )
    except ValidationError as exc:
        return RowResult(row=row, error="ROW_INVALID_RECORD", detail=str(exc))

    return RowResult(row=row, record=record)


def _iter_row_results(lines: Iterable[str]) -> Iterator[RowResult]:
    """空行を除いた各行を RowResult に変換する（先頭行のヘッダは読み飛ばす）"""
    row = 0
    for line in lines:
        if not line.strip():
            continue
        row += 1
        if row == 1 and line.startswith(HEADER_PREFIX):
            continue
        result = _convert_row(row, line)
        if not result.ok:
            logger.debug("skip row %d: %s %s", row, result.error, result.detail)
        yield result


def split_lines(text: str) -> List[str]:
    """CRLF / LF / CR のいずれでも行に分割する"""
    return _LINE_BREAK.split(text)


def iter_decode_csv_lines(lines: Iterable[str]) -> Iterator[TransactionRecord]:
    """行単位のストリーミング decode。不正な行は読み飛ばす。

    lines の各要素は CRLF / LF / CR で再分割するため、ファイルオブジェクトを
    そのまま渡してもよい（CR 終端のファイルは 1 要素で渡ってくる）。
    """
    split = (line for chunk in lines for line in split_lines(chunk))
    for result in _iter_row_results(split):
        if result.record is not None:
            yield result.record


def decode_csv_to_transactions(text: str) -> List[TransactionRecord]:
    """バックアップ CSV テキストを取引レコード列に変換する

    不正な行（列不足・種別不明・日付不正）は黙って読み飛ばし、例外は投げない。
    """
    return [
        result.record
        for result in _iter_row_results(split_lines(text))
        if result.record is not None
    ]


def decode_csv_report(text: str) -> DecodeReport:
    """decode に加えて、スキップした行を Issue として集計する"""
    lines = split_lines(text)
    first = next((line for line in lines if line.strip()), None)
    header_skipped = first is not None and first.startswith(HEADER_PREFIX)

    records: List[TransactionRecord] = []
    issues: List[Issue] = []
    data_lines = 0

    for result in _iter_row_results(lines):
        data_lines += 1
        if result.record is not None:
            records.append(result.record)
            continue
        issues.append(
            Issue(
                type=result.error or "ROW_SKIPPED",
                row=result.row,
                severity="warning",
                description=result.detail,
            )
        )

    stats = Stats(
        lines=data_lines,
        header_skipped=header_skipped,
        accepted=len(records),
        skipped=len(issues),
    )
    return DecodeReport(records=records, issues=issues, stats=stats)
