"""In-store QR payloads.

Two formats are printed on shelf and door codes:

* JSON ``{"type": "store_scan", "storeId": ..., "location": ..., "timestamp": ...}``
* ``retailrune://product/<productId>?userId=...&location=...`` or
  ``retailrune://store/<storeId>?location=...``
"""

import json
from dataclasses import asdict, dataclass
from typing import Optional
from urllib.parse import parse_qs, quote, unquote, urlencode, urlsplit

QR_SCHEME = "retailrune"


class InvalidQRPayload(ValueError):
    pass


@dataclass
class ScanData:
    type: str  # store_scan | product_scan
    store_id: Optional[str] = None
    product_id: Optional[str] = None
    user_id: Optional[str] = None
    location: Optional[str] = None
    timestamp: Optional[str] = None

    def to_api(self) -> dict:
        names = {
            "store_id": "storeId",
            "product_id": "productId",
            "user_id": "userId",
        }
        return {names.get(k, k): v for k, v in asdict(self).items()}


def _first(query: dict, key: str) -> Optional[str]:
    values = query.get(key)
    return values[0] if values else None


def _optional_text(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidQRPayload(f"{key} must be a string")
    return value


def _parse_uri(text: str) -> ScanData:
    parts = urlsplit(text)
    # retailrune://product/p1 -> netloc "product", path "/p1"
    kind = parts.netloc
    segments = [s for s in parts.path.split("/") if s]
    if not segments:
        raise InvalidQRPayload(f"QR link has no {kind or 'target'} id")
    target = unquote(segments[-1])
    query = parse_qs(parts.query)

    if kind == "product":
        return ScanData(
            type="product_scan",
            product_id=target,
            user_id=_first(query, "userId"),
            store_id=_first(query, "storeId"),
            location=_first(query, "location"),
            timestamp=_first(query, "timestamp"),
        )
    if kind == "store":
        return ScanData(
            type="store_scan",
            store_id=target,
            location=_first(query, "location"),
            timestamp=_first(query, "timestamp"),
        )
    raise InvalidQRPayload(f"Unknown QR link type: {kind!r}")


def parse_qr_payload(text: str) -> ScanData:
    text = (text or "").strip()
    if not text:
        raise InvalidQRPayload("Empty QR payload")

    if text.startswith(f"{QR_SCHEME}://"):
        return _parse_uri(text)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        raise InvalidQRPayload("QR payload is neither JSON nor a retailrune:// link")

    if not isinstance(payload, dict) or payload.get("type") != "store_scan":
        raise InvalidQRPayload("Unsupported QR payload type")
    store_id = payload.get("storeId")
    if not store_id:
        raise InvalidQRPayload("storeId is required in store QR payloads")
    if not isinstance(store_id, (str, int)) or isinstance(store_id, bool):
        raise InvalidQRPayload("storeId must be a string")

    return ScanData(
        type="store_scan",
        store_id=str(store_id),
        location=_optional_text(payload, "location"),
        timestamp=_optional_text(payload, "timestamp"),
    )


def build_product_qr_uri(
    product_id: str,
    user_id: Optional[str] = None,
    location: Optional[str] = None,
) -> str:
    query = {k: v for k, v in (("userId", user_id), ("location", location)) if v}
    uri = f"{QR_SCHEME}://product/{quote(product_id, safe='')}"
    if query:
        uri += "?" + urlencode(query)
    return uri
