"""
HMAC-SHA256 authenticity checks shared by the webhook and OAuth paths.

Two schemes exist on the storefront platform:

* webhooks sign the raw request body and send the digest base64-encoded in
  ``X-Shopify-Hmac-Sha256``;
* the OAuth redirect signs the sorted ``key=value`` pairs of every other
  query parameter and sends the digest hex-encoded in the ``hmac`` parameter.

Both go through :func:`verify` with an explicit :class:`SignatureMode`.  Any
malformed input is a failed verification, never an exception.
"""
from __future__ import annotations

import base64
import binascii
import enum
import hashlib
import hmac
import logging
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

_OAUTH_SIGNATURE_PARAMS = ("hmac", "signature")


class SignatureMode(str, enum.Enum):
    BASE64 = "base64"
    HEX = "hex"


def _digest(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def compute_signature(
    message: bytes, secret: str, mode: SignatureMode = SignatureMode.BASE64
) -> str:
    digest = _digest(message, secret)
    if mode is SignatureMode.HEX:
        return digest.hex()
    return base64.b64encode(digest).decode("ascii")


def _decode(signature: str, mode: SignatureMode) -> Optional[bytes]:
    try:
        if mode is SignatureMode.HEX:
            return bytes.fromhex(signature)
        return base64.b64decode(signature, validate=True)
    except (ValueError, binascii.Error):
        return None


def verify(
    raw_body: bytes,
    signature_header: Optional[str],
    shared_secret: Optional[str],
    mode: SignatureMode = SignatureMode.BASE64,
) -> bool:
    """Constant-time check of *signature_header* against HMAC(*raw_body*)."""
    if not shared_secret or not signature_header:
        return False

    signature = signature_header.strip()
    if signature.lower().startswith("sha256="):
        signature = signature[len("sha256="):]

    if _decode(signature, mode) is None:
        logger.debug("Signature is not valid %s", mode.value)
        return False
    if mode is SignatureMode.HEX:
        signature = signature.lower()

    # Compare encoded forms: base64 tolerates junk in the padding bits
    expected = compute_signature(raw_body, shared_secret, mode)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))


def oauth_message(query: Mapping[str, str]) -> bytes:
    """Sorted ``key=value`` pairs joined with ``&``, signature params excluded."""
    pairs = [
        f"{key}={query[key]}"
        for key in sorted(query)
        if key not in _OAUTH_SIGNATURE_PARAMS
    ]
    return "&".join(pairs).encode("utf-8")


def verify_oauth_query(query: Mapping[str, str], client_secret: Optional[str]) -> bool:
    """Verify an OAuth redirect callback's ``hmac`` query parameter."""
    provided = query.get("hmac")
    if not provided:
        logger.warning("OAuth callback without hmac parameter")
        return False
    return verify(oauth_message(query), provided, client_secret, SignatureMode.HEX)
