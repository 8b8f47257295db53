"""
Canteen Portal — Pickup QR payloads

The payload is compact JSON in a fixed key order so the stored string, the
rendered QR and a re-scan are byte-identical. A "signature" field carries an
HMAC-SHA256 over the canonical (sorted-key) JSON of every other field.
"""
import base64
import hashlib
import hmac
import io
import json
from datetime import datetime, timezone
from typing import Any

import qrcode

from canteen_portal.core.config import get_settings
from canteen_portal.core.errors import MalformedQR

settings = get_settings()

SIGNATURE_FIELD = "signature"


def json_number(value: float) -> int | float:
    value = float(value)
    return int(value) if value.is_integer() else value


def format_payment_time(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _canonical(payload: dict[str, Any]) -> bytes:
    unsigned = {k: v for k, v in payload.items() if k != SIGNATURE_FIELD}
    return json.dumps(unsigned, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode()


def compute_signature(payload: dict[str, Any], secret: str | None = None) -> str:
    key = (secret or settings.QR_SIGNING_SECRET).encode()
    return hmac.new(key, _canonical(payload), hashlib.sha256).hexdigest()


def build_payload(
    *,
    order_id: str,
    payer_name: str,
    college_id: str,
    items: list[tuple[str, int]],
    amount: float,
    payment_time: datetime,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "order_id": order_id,
        "payer_name": payer_name,
        "college_id": college_id,
        "items": [{"dish": dish, "qty": qty} for dish, qty in items],
        "amount": json_number(amount),
        "payment_status": "PAID",
        "payment_time": format_payment_time(payment_time),
    }
    payload[SIGNATURE_FIELD] = compute_signature(payload)
    return payload


def serialize(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def parse(raw: str) -> dict[str, Any]:
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        raise MalformedQR()
    if not isinstance(payload, dict):
        raise MalformedQR()
    return payload


def has_valid_signature(payload: dict[str, Any]) -> bool:
    signature = payload.get(SIGNATURE_FIELD)
    if not isinstance(signature, str):
        return False
    return hmac.compare_digest(compute_signature(payload).encode(), signature.encode())


def render_data_url(text: str) -> str:
    image = qrcode.make(text)
    buf = io.BytesIO()
    image.save(buf)
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
