from typing import Any, Dict, Optional

import httpx
import structlog
from pydantic import ValidationError

from config.settings import settings

from .model import GenerateResponse, StatusResponse
from .signer import get_full_api_url

logger = structlog.get_logger(__name__)


class LiblibAPIError(Exception):
    """Downstream call failed. status_code is None when no HTTP response was received."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"[{self.status_code}] {self.message}"


class LiblibClient:
    """
    Signed calls to the LiblibAI open API.
    Each call signs its own URL, so timestamp and nonce are fresh per request.
    """

    def __init__(
        self,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        text2img_endpoint: Optional[str] = None,
        status_endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_key = access_key if access_key is not None else settings.LIBLIB_ACCESS_KEY
        self.secret_key = secret_key if secret_key is not None else settings.LIBLIB_SECRET_KEY
        self.base_url = (base_url if base_url is not None else settings.LIBLIB_BASE_URL).rstrip("/")
        self.text2img_endpoint = (
            text2img_endpoint if text2img_endpoint is not None else settings.LIBLIB_TEXT2IMG_ENDPOINT
        )
        self.status_endpoint = status_endpoint if status_endpoint is not None else settings.LIBLIB_STATUS_ENDPOINT
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.transport = transport

    def _signed_url(self, endpoint: str) -> str:
        return get_full_api_url(
            endpoint,
            base_url=self.base_url,
            access_key=self.access_key,
            secret_key=self.secret_key,
        )

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Any:
        """
        POST to a signed endpoint and return the "data" field of the reply.
        Raises LiblibAPIError on HTTP errors, transport errors and non-zero "code".
        """
        # Sign first so an empty endpoint fails before any network call
        url = self._signed_url(endpoint)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(url, json=payload, headers={"Content-Type": "application/json"})
        except httpx.HTTPError as e:
            logger.error("liblib_transport_error", endpoint=endpoint, error=str(e))
            raise LiblibAPIError(str(e) or e.__class__.__name__) from e

        if r.status_code >= 400:
            logger.error(
                "liblib_http_error",
                endpoint=endpoint,
                status=r.status_code,
                body=r.text[:500],
            )
            raise LiblibAPIError(_error_message(r), status_code=r.status_code)

        try:
            body = r.json()
        except ValueError as e:
            raise LiblibAPIError(f"Invalid JSON from LiblibAI: {r.text[:200]}", status_code=502) from e

        code = body.get("code", 0) if isinstance(body, dict) else None
        if code != 0:
            msg = body.get("msg") if isinstance(body, dict) else None
            logger.error("liblib_api_error", endpoint=endpoint, code=code, msg=msg)
            raise LiblibAPIError(msg or f"LiblibAI returned code {code}", status_code=502)

        return body.get("data")

    async def submit(self, request_body: Dict[str, Any]) -> str:
        """
        Submit a text-to-image job.
        Returns the generateUuid used to query status.
        """
        logger.info("liblib_submit", template=request_body.get("templateUuid"))
        data = await self._post(self.text2img_endpoint, request_body)
        if not isinstance(data, dict) or not data.get("generateUuid"):
            raise LiblibAPIError(f"LiblibAI did not return generateUuid: {data}", status_code=502)
        result = GenerateResponse(**data)
        logger.info("liblib_submitted", generate_uuid=result.generateUuid)
        return result.generateUuid

    async def fetch_status(self, generate_uuid: str) -> StatusResponse:
        """Single status fetch; looping is up to the caller."""
        if not generate_uuid:
            raise ValueError("generate_uuid cannot be empty")
        data = await self._post(self.status_endpoint, {"generateUuid": generate_uuid})
        if not isinstance(data, dict):
            raise LiblibAPIError(f"LiblibAI returned no status data: {data}", status_code=502)
        data.setdefault("generateUuid", generate_uuid)
        try:
            status = StatusResponse(**data)
        except ValidationError as e:
            raise LiblibAPIError(f"Malformed status data: {e}", status_code=502) from e
        logger.debug(
            "liblib_status",
            generate_uuid=generate_uuid,
            generate_status=status.generateStatus,
            percent=status.percentCompleted,
            images=len(status.images),
        )
        return status


def _error_message(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text[:300] or f"HTTP {r.status_code}"
    if isinstance(body, dict):
        return str(body.get("msg") or body.get("message") or body.get("error") or body)
    return str(body)
