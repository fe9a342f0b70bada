from __future__ import annotations

import io
import sys
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response

# ============================================================
# プロジェクトルートを sys.path に追加
# （Lambda / uvicorn どちらでも core パッケージを解決できるように）
# ============================================================
ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from core.txn_csv.backup import (  # noqa: E402
    InMemoryTransactionRepository,
    TransactionRepository,
    backup_filename,
    export_backup,
)
from core.txn_csv.logging_setup import configure_logging  # noqa: E402
from core.txn_csv.models import CsvExportRequest, CsvImportRequest  # noqa: E402
from core.txn_csv.service import (  # noqa: E402
    TransactionCsvError,
    export_csv,
    import_csv,
)
from core.txn_csv.settings import get_settings  # noqa: E402

settings = get_settings()
configure_logging(settings.log_level)

# ============================================================
# API Gateway 側で /csv をプレフィックスとしてルーティングしているため、
# FastAPI には root_path を指定し、ルート定義は /v0/... にする
# ============================================================
app = FastAPI(
    title="Transaction CSV Backup API",
    version=settings.api_version,
    description="Finance tracker: transaction CSV export / import",
    root_path=settings.root_path,
)

# アプリ全体で共有する取引ストア
app.state.repository = InMemoryTransactionRepository()


def get_repository(request: Request) -> TransactionRepository:
    return request.app.state.repository


@app.exception_handler(TransactionCsvError)
async def transaction_csv_error_handler(_: Request, exc: TransactionCsvError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.code,
                "message": str(exc),
            },
            "meta": {
                "version": settings.api_version,
            },
        },
    )


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/v0/export")
async def csv_export_endpoint(payload: CsvExportRequest):
    response = export_csv(payload, settings=settings)
    return response.model_dump()


@app.post("/v0/import")
async def csv_import_endpoint(
    payload: CsvImportRequest,
    repository: TransactionRepository = Depends(get_repository),
):
    response = import_csv(payload, repository=repository, settings=settings)
    # 金額の NaN / Infinity は "NaN" / "Infinity" 文字列として返す
    return Response(
        content=response.model_dump_json(by_alias=True),
        media_type="application/json",
    )


@app.get("/v0/backup")
async def csv_backup_endpoint(
    repository: TransactionRepository = Depends(get_repository),
):
    buffer = io.StringIO()
    export_backup(repository, buffer)
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{backup_filename()}"'},
    )
