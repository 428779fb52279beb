import json
import logging
from typing import Optional
from urllib.parse import urlsplit

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException, Response
from fastapi.responses import JSONResponse

from backend.app.config import settings
from backend.app.db import utc_now_iso
from backend.app.errors import ok
from backend.app.models import PaymentDemoRequest
from backend.app.payments import (
    CORS_HEADERS,
    PAYMENT_RESPONSE_HEADER,
    PaymentError,
    PaymentNotConfiguredError,
    X402PaymentClient,
    get_payment_client,
    payment_receipt,
    payment_requirements,
    verify_payment_header,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/test")
def paid_content(x_payment: Optional[str] = Header(None)):
    if not x_payment:
        return JSONResponse(
            status_code=402,
            content={
                "error": "Payment required",
                "message": "This endpoint requires payment to access",
                "paymentRequirements": payment_requirements(),
            },
            headers=CORS_HEADERS,
        )

    payment = verify_payment_header(x_payment)
    if payment is None:
        logger.info("Rejected x402 payment header")
        return JSONResponse(
            status_code=402,
            content={
                "error": "Payment verification failed",
                "message": "Invalid payment data provided",
            },
            headers={"Access-Control-Allow-Origin": "*"},
        )

    receipt = payment_receipt(payment)
    return JSONResponse(
        content={
            "success": True,
            "message": "Payment verified successfully",
            "data": {
                "content": "This is premium content accessible via x402 payment",
                "timestamp": utc_now_iso(),
                "paymentAmount": payment["amount"],
                "transactionHash": receipt["transactionHash"],
            },
        },
        headers={
            PAYMENT_RESPONSE_HEADER: json.dumps(receipt),
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Expose-Headers": PAYMENT_RESPONSE_HEADER,
        },
    )


@router.options("/test")
def paid_content_preflight():
    return Response(status_code=200, headers={**CORS_HEADERS, "Access-Control-Max-Age": "86400"})


def _same_origin(url: str, base: str) -> bool:
    target, origin = urlsplit(url), urlsplit(base)
    return (target.scheme, target.netloc.lower()) == (origin.scheme, origin.netloc.lower())


@router.post("/demo")
async def payment_demo(
    body: PaymentDemoRequest,
    client: X402PaymentClient = Depends(get_payment_client),
):
    url = body.url or settings.x402_test_url
    if not _same_origin(url, settings.app_url):
        raise HTTPException(status_code=400, detail="Payment demo url must point at this service")
    try:
        result = await client.make_payment_request(url)
    except PaymentNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except PaymentError as e:
        logger.warning("x402 demo payment failed: %s", e)
        raise HTTPException(status_code=402, detail=str(e))
    except httpx.HTTPError as e:
        logger.warning("x402 demo request to %s failed: %s", url, e)
        raise HTTPException(status_code=502, detail="Payment target unreachable")

    return ok(
        {
            "data": result["data"],
            "status": result["status"],
            "paymentInfo": result["paymentInfo"],
        },
        "Payment request completed",
    )
