"""
Unit tests for webhook and OAuth HMAC verification.
"""
from __future__ import annotations

import base64
import hashlib
import hmac

import pytest

from notionsync.services.signatures import (
    SignatureMode,
    compute_signature,
    oauth_message,
    verify,
    verify_oauth_query,
)

SECRET = "testsecret"
BODY = b'{"id": 5550001, "total_price": "99.99"}'


def _b64(body: bytes, secret: str = SECRET) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


def test_compute_matches_reference_hmac():
    assert compute_signature(BODY, SECRET) == _b64(BODY)
    assert compute_signature(BODY, SECRET, SignatureMode.HEX) == hmac.new(
        SECRET.encode(), BODY, hashlib.sha256
    ).hexdigest()


def test_valid_signature_accepted():
    assert verify(BODY, _b64(BODY), SECRET) is True


def test_sha256_prefix_accepted():
    assert verify(BODY, "sha256=" + _b64(BODY), SECRET) is True


def test_surrounding_whitespace_ignored():
    assert verify(BODY, f"  {_b64(BODY)}\n", SECRET) is True


@pytest.mark.parametrize("index", [0, len(BODY) // 2, len(BODY) - 1])
def test_single_byte_body_change_rejected(index):
    signature = _b64(BODY)
    tampered = bytearray(BODY)
    tampered[index] ^= 0x01
    assert verify(bytes(tampered), signature, SECRET) is False


def test_single_byte_signature_change_rejected():
    digest = bytearray(hmac.new(SECRET.encode(), BODY, hashlib.sha256).digest())
    digest[0] ^= 0x01
    assert verify(BODY, base64.b64encode(bytes(digest)).decode(), SECRET) is False


def test_wrong_secret_rejected():
    assert verify(BODY, _b64(BODY, "othersecret"), SECRET) is False


@pytest.mark.parametrize("header", [None, ""])
def test_missing_signature_rejected(header):
    assert verify(BODY, header, SECRET) is False


@pytest.mark.parametrize("secret", [None, ""])
def test_missing_secret_rejected(secret):
    assert verify(BODY, _b64(BODY), secret) is False


@pytest.mark.parametrize("header", ["not base64!!", "abc", "====", "éé"])
def test_malformed_base64_rejected(header):
    assert verify(BODY, header, SECRET) is False


def test_malformed_hex_rejected():
    assert verify(BODY, "zz" * 32, SECRET, SignatureMode.HEX) is False


def test_hex_digest_of_wrong_length_rejected():
    full = compute_signature(BODY, SECRET, SignatureMode.HEX)
    assert verify(BODY, full[:-2], SECRET, SignatureMode.HEX) is False


def test_uppercase_hex_digest_accepted():
    upper = compute_signature(BODY, SECRET, SignatureMode.HEX).upper()
    assert verify(BODY, upper, SECRET, SignatureMode.HEX) is True


def test_oauth_message_sorted_without_signature_params():
    query = {"timestamp": "1337178173", "shop": "shop-1.myshopify.com", "code": "abc", "hmac": "x"}
    assert oauth_message(query) == b"code=abc&shop=shop-1.myshopify.com&timestamp=1337178173"


def test_oauth_query_verified():
    query = {"code": "0907a61c0c8d55e99db179b68161bc00", "shop": "shop-1.myshopify.com",
             "state": "0.6784241404160823", "timestamp": "1337178173"}
    query["hmac"] = hmac.new(b"client-secret", oauth_message(query), hashlib.sha256).hexdigest()

    assert verify_oauth_query(query, "client-secret") is True
    assert verify_oauth_query({**query, "state": "tampered"}, "client-secret") is False
    assert verify_oauth_query({k: v for k, v in query.items() if k != "hmac"}, "client-secret") is False
