"""
Tests for URL signing: stable signatures, URL-safe tokens, query layout.
"""

from urllib.parse import parse_qs, urlparse

import pytest

from backend import signer
from backend.signer import compute_signature, get_full_api_url, get_signed_url, url_signature

STATUS_PATH = "/api/generate/webui/status"
SECRET = "test-secret"
TS = 1700000000000


@pytest.mark.parametrize(
    "nonce, expected",
    [
        # reference values from `openssl dgst -sha1 -hmac test-secret -binary | base64`
        ("abcdefghijklmnop", "sWQEKV5JbJfPqT7ZQlvr9KyVBn4"),
        ("x1", "imx1HU4ccJh3yOdG0A7cTQm3_7w"),
        ("nonce0002", "iXTgNNBffWjZiV-AbevLLGTy7lA"),
    ],
)
def test_signature_matches_reference(nonce, expected):
    assert compute_signature(STATUS_PATH, TS, nonce, SECRET) == expected


def test_signature_is_reproducible():
    first = url_signature(STATUS_PATH, secret_key=SECRET, access_key="ak", timestamp=TS, nonce="n1")
    second = url_signature(STATUS_PATH, secret_key=SECRET, access_key="ak", timestamp=TS, nonce="n1")
    assert first == second


def test_positional_arguments_keep_timestamp_and_nonce():
    signed = url_signature(STATUS_PATH, SECRET, TS, "x1")
    assert signed.timestamp == TS
    assert signed.nonce == "x1"
    assert signed.signature == "imx1HU4ccJh3yOdG0A7cTQm3_7w"
    assert url_signature(STATUS_PATH, SECRET, TS, "x1") == signed


def test_access_key_is_keyword_only():
    with pytest.raises(TypeError):
        url_signature(STATUS_PATH, SECRET, TS, "x1", "ak")


def test_signature_changes_with_inputs():
    base = compute_signature(STATUS_PATH, TS, "n1", SECRET)
    assert compute_signature(STATUS_PATH, TS + 1, "n1", SECRET) != base
    assert compute_signature(STATUS_PATH, TS, "n2", SECRET) != base
    assert compute_signature(STATUS_PATH, TS, "n1", "other-secret") != base
    assert compute_signature("/other", TS, "n1", SECRET) != base


def test_signature_is_url_safe():
    for i in range(200):
        sig = url_signature(STATUS_PATH, secret_key=SECRET, access_key="ak", timestamp=TS + i).signature
        assert "+" not in sig
        assert "/" not in sig
        assert not sig.endswith("=")


def test_empty_url_raises():
    with pytest.raises(ValueError):
        url_signature("", secret_key=SECRET, access_key="ak")
    with pytest.raises(ValueError):
        get_full_api_url("", base_url="https://example.test", access_key="ak", secret_key=SECRET)


def test_generated_timestamp_and_nonce(monkeypatch):
    monkeypatch.setattr(signer, "get_timestamp_ms", lambda: 1234)
    signed = url_signature(STATUS_PATH, secret_key=SECRET, access_key="ak")
    assert signed.timestamp == 1234
    assert len(signed.nonce) == 16
    assert signed.nonce.isalnum()


def test_nonce_is_fresh_per_call():
    nonces = {url_signature(STATUS_PATH, secret_key=SECRET, access_key="ak").nonce for _ in range(20)}
    assert len(nonces) == 20


def test_signed_url_query_parameters():
    url = get_signed_url(STATUS_PATH, access_key="my-access", secret_key=SECRET)
    parsed = urlparse(url)
    assert parsed.path == STATUS_PATH
    assert list(parse_qs(parsed.query).keys()) == ["AccessKey", "Signature", "Timestamp", "SignatureNonce"]

    qs = {k: v[0] for k, v in parse_qs(parsed.query).items()}
    assert qs["AccessKey"] == "my-access"
    expected = compute_signature(STATUS_PATH, int(qs["Timestamp"]), qs["SignatureNonce"], SECRET)
    assert qs["Signature"] == expected


def test_full_api_url_prefixes_base_url():
    url = get_full_api_url(STATUS_PATH, base_url="https://openapi.example.test/", access_key="ak", secret_key=SECRET)
    assert url.startswith("https://openapi.example.test/api/generate/webui/status?AccessKey=ak&Signature=")
