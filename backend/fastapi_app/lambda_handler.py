from __future__ import annotations

import json

from mangum import Mangum

from backend.fastapi_app.main import app
from core.txn_csv.logging_setup import get_logger

logger = get_logger("core.txn_csv.lambda")


def _safe_get(d, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def _base_path(stage):
    # /dev や /prod を Mangum 側で剥がして FastAPI に渡す
    return f"/{stage}" if stage and stage != "$default" else None


def handler(event, context):
    stage = _safe_get(event, "requestContext", "stage", default=None)
    method = _safe_get(event, "requestContext", "http", "method", default=None)

    logger.info(
        json.dumps(
            {
                "diag": "incoming_request",
                "stage": stage,
                "method": method,
                "rawPath": event.get("rawPath"),
                "requestContext.http.path": _safe_get(
                    event, "requestContext", "http", "path", default=None
                ),
            },
            ensure_ascii=False,
        )
    )

    asgi = Mangum(app, api_gateway_base_path=_base_path(stage))
    return asgi(event, context)
