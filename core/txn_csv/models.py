from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any, Literal, Optional, List, Dict

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class TransactionType(str, Enum):
    """取引種別。CSV 上ではラベル文字列そのもの（大文字）で表現する。"""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class ResponseLevel(str, Enum):
    """
    import レスポンスの冗長度。
    - simple   : 取り込めたレコードと最小限の meta のみ
    - standard : スキップした行の issues と stats も返す
    - debug    : 入力バイト数などを含む meta をすべて返す
    """

    simple = "simple"
    standard = "standard"
    debug = "debug"


class TransactionRecord(BaseModel):
    """
    取引 1 件分のレコード。

    category_id は未分類なら None。CSV 上の "null" はワイヤ表現のみで、
    モデル内部に文字列 "null" を持ち込まない。
    JSON では categoryId として入出力する（アプリ側のフィールド名に合わせる）。
    """

    id: str
    title: str
    description: str = ""
    amount: float
    type: TransactionType
    date: dt.date
    category_id: Optional[str] = Field(default=None, alias="categoryId")

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        ser_json_inf_nan="strings",
        json_schema_extra={
            "example": {
                "id": "1",
                "title": "Milk",
                "description": "Grocery shop",
                "amount": 5.5,
                "type": "EXPENSE",
                "date": "2026-02-10",
                "categoryId": None,
            }
        },
    )


class Issue(BaseModel):
    type: str
    row: Optional[int] = None
    severity: Literal["info", "warning", "error"] = "warning"
    description: str


class Stats(BaseModel):
    lines: int = 0
    header_skipped: bool = False
    accepted: int = 0
    skipped: int = 0


class DecodeReport(BaseModel):
    """decode の集計結果（レコード本体 + スキップした行の情報）"""

    records: List[TransactionRecord] = Field(default_factory=list)
    issues: List[Issue] = Field(default_factory=list)
    stats: Stats = Field(default_factory=Stats)


# ---------------------------------------------------------------------------
# API リクエスト / レスポンス
# ---------------------------------------------------------------------------


class CsvExportRequest(BaseModel):
    transactions: List[TransactionRecord] = Field(default_factory=list)
    as_b64: bool = Field(
        default=False,
        description="True の場合、csv_text の代わりに csv_b64 を返す",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "transactions": [
                    {
                        "id": "1",
                        "title": "Milk",
                        "description": "Grocery shop",
                        "amount": 5.5,
                        "type": "EXPENSE",
                        "date": "2026-02-10",
                        "categoryId": None,
                    }
                ],
                "as_b64": False,
            }
        }
    )


class CsvExportResult(BaseModel):
    csv_text: Optional[str] = None
    csv_b64: Optional[str] = None
    records: int = 0


class CsvExportResponse(BaseModel):
    result: CsvExportResult
    meta: Dict[str, Any]


class CsvImportRequest(BaseModel):
    """
    バックアップ CSV 取り込みリクエスト。

    基本利用者は csv_b64 だけ渡せばよい。
    persist=True のときはアプリのトランザクションストアへ保存する。
    """

    csv_b64: str
    persist: bool = False
    response_level: Optional[ResponseLevel] = Field(
        default=None,
        description="Response verbosity: simple | standard | debug (未指定なら設定値)",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "csv_b64": "<Base64 encoded CSV string>",
                "persist": False,
                "response_level": "simple",
            }
        }
    )


class CsvImportResult(BaseModel):
    """
    result 部は response_level に応じて省略されうるため、
    stats は Optional とする（simple 時は stats なし）。
    """

    transactions: List[TransactionRecord] = Field(default_factory=list)
    issues: List[Issue] = Field(default_factory=list)
    stats: Optional[Stats] = None


class CsvImportResponse(BaseModel):
    result: CsvImportResult
    meta: Dict[str, Any]
