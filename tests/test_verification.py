"""Webhook signature verification (HMAC-SHA256, base64, constant-time)."""

from __future__ import annotations

import base64
import hashlib
import hmac

import pytest

from fulfilment_service.verification import compute_signature, verify_signature

SECRET = "shopify-test-secret"
BODY = b'{"id": 123, "line_items": []}'


def _reference_signature(body: bytes, secret: str) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


def test_compute_signature_matches_reference():
    assert compute_signature(BODY, SECRET) == _reference_signature(BODY, SECRET)


def test_valid_signature():
    assert verify_signature(BODY, _reference_signature(BODY, SECRET), SECRET) is True


@pytest.mark.parametrize("index", [0, 5, len(BODY) - 1])
def test_single_byte_body_mutation_fails(index):
    sig = compute_signature(BODY, SECRET)
    mutated = bytearray(BODY)
    mutated[index] ^= 0x01
    assert verify_signature(bytes(mutated), sig, SECRET) is False


def test_single_char_signature_mutation_fails():
    sig = compute_signature(BODY, SECRET)
    swapped = ("B" if sig[0] == "A" else "A") + sig[1:]
    assert verify_signature(BODY, swapped, SECRET) is False


def test_reserialized_body_fails():
    """Whitespace changes from re-serialization invalidate the signature."""
    sig = compute_signature(BODY, SECRET)
    assert verify_signature(b'{"id":123,"line_items":[]}', sig, SECRET) is False


def test_wrong_secret_fails():
    assert verify_signature(BODY, compute_signature(BODY, "other"), SECRET) is False


@pytest.mark.parametrize("claimed", [None, "", "not-base64!!", "Ω-unicode"])
def test_missing_or_malformed_signature_is_not_verified(claimed):
    assert verify_signature(BODY, claimed, SECRET) is False


def test_empty_secret_never_verifies():
    assert verify_signature(BODY, compute_signature(BODY, ""), "") is False


@pytest.mark.parametrize("suffix", ["\n", " ", "\t"])
def test_signature_with_trailing_whitespace_fails(suffix):
    sig = compute_signature(BODY, SECRET)
    assert verify_signature(BODY, sig + suffix, SECRET) is False
