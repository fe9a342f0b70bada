from __future__ import annotations

import datetime as dt
import threading
from typing import Dict, Iterable, List, Optional, Protocol, TextIO

from .codec import decode_csv_to_transactions, encode_transactions_to_csv
from .logging_setup import get_logger
from .models import TransactionRecord

logger = get_logger(__name__)


class TransactionRepository(Protocol):
    """取引ストアとして必要な最小限のインターフェース（取得と一括登録のみ）"""

    def all_transactions(self) -> List[TransactionRecord]: ...

    def insert_transactions(self, records: Iterable[TransactionRecord]) -> None: ...


class InMemoryTransactionRepository:
    """メモリ上の取引ストア

    同じ id のレコードは置き換える（登録順は最初に登録された位置を維持）。
    """

    def __init__(self, records: Optional[Iterable[TransactionRecord]] = None) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, TransactionRecord] = {}
        if records is not None:
            self.insert_transactions(records)

    def all_transactions(self) -> List[TransactionRecord]:
        with self._lock:
            return list(self._records.values())

    def insert_transactions(self, records: Iterable[TransactionRecord]) -> None:
        with self._lock:
            for record in records:
                self._records[record.id] = record

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def backup_filename(now: Optional[dt.datetime] = None) -> str:
    """finance_backup_<エポックミリ秒>.csv"""
    now = now or dt.datetime.now(dt.timezone.utc)
    millis = int(now.timestamp()) * 1000 + now.microsecond // 1000
    return f"finance_backup_{millis}.csv"


def export_backup(repository: TransactionRepository, stream: TextIO) -> int:
    """ストアの全取引を CSV にして stream に書き出し、件数を返す

    stream の open / close は呼び出し側の責務。
    """
    records = repository.all_transactions()
    stream.write(encode_transactions_to_csv(records))
    logger.info("exported %d transactions", len(records))
    return len(records)


def import_backup(repository: TransactionRepository, stream: TextIO) -> int:
    """stream の CSV を読み込み、1 件以上取り込めた場合のみストアへ登録する"""
    records = decode_csv_to_transactions(stream.read())
    if records:
        repository.insert_transactions(records)
    logger.info("imported %d transactions", len(records))
    return len(records)
