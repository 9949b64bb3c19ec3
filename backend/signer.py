# backend/signer.py

import base64
import hashlib
import hmac
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from config.settings import settings

from .utils import get_timestamp_ms, random_string


@dataclass(frozen=True)
class SignedRequest:
    url: str
    access_key: str
    signature: str
    timestamp: int
    nonce: str

    def to_url(self) -> str:
        query = urlencode(
            {
                "AccessKey": self.access_key,
                "Signature": self.signature,
                "Timestamp": self.timestamp,
                "SignatureNonce": self.nonce,
            }
        )
        return f"{self.url}?{query}"


def compute_signature(url: str, timestamp: int, nonce: str, secret_key: str) -> str:
    """
    HMAC-SHA1 over "url&timestamp&nonce", base64 encoded and made URL-safe:
    '+' -> '-', '/' -> '_', trailing '=' removed.
    """
    content = f"{url}&{timestamp}&{nonce}"
    digest = hmac.new(secret_key.encode("utf-8"), content.encode("utf-8"), hashlib.sha1).digest()
    token = base64.b64encode(digest).decode("ascii")
    return token.replace("+", "-").replace("/", "_").rstrip("=")


def url_signature(
    url: str,
    secret_key: Optional[str] = None,
    timestamp: Optional[int] = None,
    nonce: Optional[str] = None,
    *,
    access_key: Optional[str] = None,
) -> SignedRequest:
    """
    Sign a downstream API path.
    timestamp / nonce are generated when not given (epoch millis, 16 random chars).
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if secret_key is None:
        secret_key = settings.LIBLIB_SECRET_KEY
    if access_key is None:
        access_key = settings.LIBLIB_ACCESS_KEY
    if timestamp is None:
        timestamp = get_timestamp_ms()
    if nonce is None:
        nonce = random_string(16)

    signature = compute_signature(url, timestamp, nonce, secret_key)
    return SignedRequest(
        url=url,
        access_key=access_key,
        signature=signature,
        timestamp=timestamp,
        nonce=nonce,
    )


def get_signed_url(
    url: str,
    access_key: Optional[str] = None,
    secret_key: Optional[str] = None,
) -> str:
    return url_signature(url, secret_key=secret_key, access_key=access_key).to_url()


def get_full_api_url(
    endpoint: str,
    base_url: Optional[str] = None,
    access_key: Optional[str] = None,
    secret_key: Optional[str] = None,
) -> str:
    """Base URL + signed endpoint, ready for httpx."""
    if base_url is None:
        base_url = settings.LIBLIB_BASE_URL
    signed = get_signed_url(endpoint, access_key=access_key, secret_key=secret_key)
    return f"{base_url.rstrip('/')}{signed}"
