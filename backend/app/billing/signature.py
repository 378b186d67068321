"""PayFast signature generation and verification.

The gateway signs the posted fields in the order they are sent: every
non-empty field except ``signature`` is rendered as
``name=urlencode(trim(value))``, the pairs are joined with ``&``, the merchant
passphrase is appended as ``&passphrase=...`` and the MD5 digest of the UTF-8
bytes is sent as lowercase hex.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Mapping, Optional
from urllib.parse import quote_plus

from .exceptions import SignatureMismatch

SIGNATURE_FIELD = "signature"


def _urlencode(value: str) -> str:
    # PHP urlencode escapes "~", quote_plus leaves it alone.
    return quote_plus(value.strip(), safe="").replace("~", "%7E")


def build_signature_string(fields: Mapping[str, str], passphrase: Optional[str] = None) -> str:
    parts = []
    for name, value in fields.items():
        if name == SIGNATURE_FIELD or value is None:
            continue
        if not str(value).strip():
            continue
        parts.append(f"{name}={_urlencode(str(value))}")

    payload = "&".join(parts)
    if passphrase and passphrase.strip():
        payload += f"&passphrase={_urlencode(passphrase)}"
    return payload


def generate_signature(fields: Mapping[str, str], passphrase: Optional[str] = None) -> str:
    payload = build_signature_string(fields, passphrase)
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def is_valid_signature(fields: Mapping[str, str], passphrase: Optional[str] = None) -> bool:
    received = fields.get(SIGNATURE_FIELD)
    if not received:
        return False
    expected = generate_signature(fields, passphrase)
    return hmac.compare_digest(expected.encode("ascii"), received.encode("utf-8"))


def verify_signature(
    fields: Mapping[str, str],
    passphrase: Optional[str] = None,
    *,
    user_id: Optional[str] = None,
    payment_id: Optional[str] = None,
) -> None:
    """Raise :class:`SignatureMismatch` unless the received signature matches."""

    if not fields.get(SIGNATURE_FIELD):
        raise SignatureMismatch("Notification is not signed", user_id=user_id, payment_id=payment_id)
    if not is_valid_signature(fields, passphrase):
        raise SignatureMismatch("Invalid PayFast signature", user_id=user_id, payment_id=payment_id)


__all__ = [
    "SIGNATURE_FIELD",
    "build_signature_string",
    "generate_signature",
    "is_valid_signature",
    "verify_signature",
]
