"""x402 micropayments: the 402 challenge we serve, and a client that pays one.

The flow is a single round trip. A request without an ``x-payment`` header
gets ``402`` with ``paymentRequirements``; the client picks the first
requirement, checks it against its spending limit, and retries once with an
``x-payment`` header describing the payment. A verified payment comes back
with an ``x-payment-response`` header.

Nothing here signs or settles on-chain; the header is a payment description
from the configured wallet address.
"""

import base64
import binascii
import json
import logging
import secrets
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from backend.app.config import settings
from backend.app.db import utc_now_iso

logger = logging.getLogger(__name__)

PAYMENT_HEADER = "x-payment"
PAYMENT_RESPONSE_HEADER = "x-payment-response"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, x-payment",
}


class PaymentError(Exception):
    pass


class PaymentNotConfiguredError(PaymentError):
    pass


class PaymentRequiredError(PaymentError):
    pass


class PaymentLimitExceededError(PaymentError):
    pass


# Server side

def payment_requirements() -> List[Dict[str, str]]:
    return [
        {
            "scheme": settings.x402_scheme,
            "network": settings.x402_network,
            "amount": settings.x402_amount,
            "currency": settings.x402_currency,
            "recipient": settings.x402_recipient,
            "facilitator": settings.x402_facilitator,
        }
    ]


def decode_payment_header(raw: str) -> Optional[Dict[str, Any]]:
    """Header value is JSON, or base64-encoded JSON."""
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        try:
            payload = json.loads(base64.b64decode(raw, validate=True).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
            return None
    return payload if isinstance(payload, dict) else None


def verify_payment_header(raw: str) -> Optional[Dict[str, Any]]:
    payment = decode_payment_header(raw)
    if payment is None:
        return None
    if payment.get("scheme") != settings.x402_scheme or not payment.get("amount"):
        return None
    return payment


def new_transaction_hash() -> str:
    return "0x" + secrets.token_hex(32)


def payment_receipt(payment: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "verified": True,
        "transactionHash": new_transaction_hash(),
        "amount": payment["amount"],
        "currency": payment.get("currency") or settings.x402_currency,
        "network": payment.get("network") or settings.x402_network,
    }


# Client side

def _to_decimal(value: Any, what: str, error: type = PaymentError) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise error(f"Invalid {what}: {value!r}")
    if not amount.is_finite():
        raise error(f"Invalid {what}: {value!r}")
    return amount


def _body(response: httpx.Response) -> Any:
    if "application/json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            pass
    return response.text


class X402PaymentClient:
    def __init__(
        self,
        wallet_address: Optional[str] = None,
        *,
        max_amount: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.wallet_address = settings.wallet_address if wallet_address is None else wallet_address
        self.max_amount = max_amount or settings.payment_max_amount
        self.timeout = timeout if timeout is not None else settings.payment_timeout
        self.transport = transport

    @property
    def ready(self) -> bool:
        return bool(self.wallet_address)

    def build_payment(self, requirement: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "scheme": requirement.get("scheme"),
            "network": requirement.get("network"),
            "amount": requirement.get("amount"),
            "currency": requirement.get("currency"),
            "recipient": requirement.get("recipient"),
            "facilitator": requirement.get("facilitator"),
            "from": self.wallet_address,
            "nonce": secrets.token_hex(16),
            "timestamp": utc_now_iso(),
        }

    async def make_payment_request(
        self,
        url: str,
        method: str = "GET",
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        max_amount: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        if not self.ready:
            raise PaymentNotConfiguredError(
                "Payment service not initialized. Please check wallet configuration."
            )

        limit = _to_decimal(max_amount or self.max_amount, "max amount")
        request_headers = dict(headers or {})
        logger.info("Making x402 payment request to %s", url)

        async with httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.request(method, url, json=data, headers=request_headers)

            if response.status_code == 402:
                body = _body(response)
                requirements = body.get("paymentRequirements") if isinstance(body, dict) else None
                if not requirements:
                    raise PaymentRequiredError("Payment required but no payment requirements were offered")
                if not isinstance(requirements, list) or not isinstance(requirements[0], dict):
                    raise PaymentRequiredError("Payment required but the payment requirements are malformed")

                requirement = requirements[0]
                amount = _to_decimal(requirement.get("amount"), "payment amount", PaymentRequiredError)
                if amount > limit:
                    raise PaymentLimitExceededError(
                        f"Requested {amount} {requirement.get('currency', '')} exceeds limit of {limit}".strip()
                    )

                request_headers[PAYMENT_HEADER] = json.dumps(self.build_payment(requirement))
                response = await client.request(method, url, json=data, headers=request_headers)

        if response.status_code == 402:
            body = _body(response)
            message = body.get("message") if isinstance(body, dict) else None
            raise PaymentRequiredError(f"Payment required: {message or 'Payment failed'}")
        response.raise_for_status()

        payment_info = None
        raw_info = response.headers.get(PAYMENT_RESPONSE_HEADER)
        if raw_info:
            payment_info = decode_payment_header(raw_info)
            logger.info("Payment completed: %s", payment_info)

        return {
            "data": _body(response),
            "status": response.status_code,
            "headers": dict(response.headers),
            "paymentInfo": payment_info,
        }


def get_payment_client() -> X402PaymentClient:
    return X402PaymentClient()
