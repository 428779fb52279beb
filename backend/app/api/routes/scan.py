import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.app.db import get_conn
from backend.app.errors import ok
from backend.app.llm_client import LLMClient
from backend.app.models import ScanRequest
from backend.app.qr import InvalidQRPayload, build_product_qr_uri, parse_qr_payload
from backend.app.services import get_llm, recommend_for_user, record_interaction

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
async def scan(
    body: ScanRequest,
    conn: sqlite3.Connection = Depends(get_conn),
    llm: LLMClient = Depends(get_llm),
):
    try:
        scan_data = parse_qr_payload(body.qr_data)
    except InvalidQRPayload as e:
        raise HTTPException(status_code=400, detail=str(e))

    user_id = scan_data.user_id or body.user_id
    metadata = {"scanType": scan_data.type, "source": "qr"}
    if scan_data.store_id:
        metadata["storeId"] = scan_data.store_id

    record_interaction(
        conn,
        user_id=user_id,
        product_id=scan_data.product_id or "store_scan",
        type="scan",
        location=scan_data.location,
        metadata=metadata,
    )
    logger.info("QR %s by %s", scan_data.type, user_id)

    result = await recommend_for_user(
        conn,
        llm,
        user_id=user_id,
        context=body.context,
        location=scan_data.location,
        store_id=scan_data.store_id,
    )
    return ok(
        {
            "scan": scan_data.to_api(),
            "recommendations": result["recommendations"],
            "personalizedMessage": result["personalizedMessage"],
        }
    )


@router.get("/qr")
def product_qr(
    product_id: Optional[str] = Query(None, alias="productId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    location: Optional[str] = Query(None),
):
    if not product_id:
        raise HTTPException(status_code=400, detail="productId is required")
    return ok({"uri": build_product_qr_uri(product_id, user_id, location)})
