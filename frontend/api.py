import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests
import structlog

from backend.model import TaskStatus
from config.settings import settings

logger = structlog.get_logger(__name__)

SUCCEEDED = "succeeded"
FAILED_STATE = "failed"
PENDING = "pending"
TIMED_OUT = "timed_out"
CANCELLED = "cancelled"


def _failure(error: str, details: str) -> Dict[str, Any]:
    return {"success": False, "error": error, "details": details}


@dataclass
class PollOutcome:
    generate_uuid: str
    state: str
    status: Optional[Dict[str, Any]] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def images(self) -> list:
        if not self.status:
            return []
        return self.status.get("images") or []


def classify_status(status: Dict[str, Any]) -> str:
    """
    Single terminal-state rule for a status snapshot:
    - FAILED / REVIEW_FAILED -> failed
    - images present and finished (100% or COMPLETED/REVIEWED) -> succeeded
    - REVIEWED with no images (all rejected by review) -> failed
    - anything else -> pending (0% is just "not started yet")
    """
    code = status.get("generateStatus")
    images = status.get("images") or []
    percent = status.get("percentCompleted") or 0

    if code in (TaskStatus.FAILED, TaskStatus.REVIEW_FAILED):
        return FAILED_STATE
    if images and (percent >= 1 or code in (TaskStatus.COMPLETED, TaskStatus.REVIEWED)):
        return SUCCEEDED
    if code == TaskStatus.REVIEWED:
        return FAILED_STATE
    return PENDING


class ProxyClient:
    """Client for the proxy server's /api endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.PROXY_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, error: str, **kwargs) -> Dict[str, Any]:
        """
        Call the proxy and return its {success, data, error, details} envelope.
        Network failures and malformed replies become a failure envelope.
        """
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("proxy_request_failed", method=method, url=url, error=str(e))
            return _failure(error, str(e) or e.__class__.__name__)

        try:
            data = resp.json()
        except ValueError:
            return _failure(error, f"HTTP {resp.status_code}: response is not JSON")

        if isinstance(data, dict) and isinstance(data.get("success"), bool):
            return data
        return _failure("invalid response format", "Server returned a response in an unexpected format")

    def check_health(self) -> Dict[str, Any]:
        return self._request("GET", "/health", "health check failed")

    def generate_image(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """POST /generate -> envelope with data.generateUuid"""
        return self._request("POST", "/generate", "generation failed", json=request)

    def get_status(self, generate_uuid: str) -> Dict[str, Any]:
        """GET /status/{uuid} -> envelope with one status snapshot"""
        return self._request("GET", f"/status/{generate_uuid}", "status query failed")

    def poll_status(
        self,
        generate_uuid: str,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        max_consecutive_errors: Optional[int] = None,
        on_update: Optional[Callable[[Dict[str, Any]], None]] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> PollOutcome:
        """
        Poll GET /status/{uuid} at a fixed interval until the task is done.

        Stops on success or failure (see classify_status), when `timeout`
        seconds have passed, after `max_attempts` checks, after
        `max_consecutive_errors` failed checks in a row, or when `stop_event`
        is set. Waiting happens on the event, so setting it interrupts the
        sleep immediately.
        """
        if not generate_uuid:
            raise ValueError("generate_uuid cannot be empty")

        interval = settings.POLL_INTERVAL if interval is None else interval
        timeout = settings.POLL_TIMEOUT if timeout is None else timeout
        if max_consecutive_errors is None:
            max_consecutive_errors = settings.POLL_MAX_ERRORS
        stop_event = stop_event or threading.Event()

        start = time.monotonic()
        attempts = 0
        errors = 0
        last_status: Optional[Dict[str, Any]] = None

        while True:
            if stop_event.is_set():
                return PollOutcome(generate_uuid, CANCELLED, last_status, attempts)

            attempts += 1
            resp = self.get_status(generate_uuid)
            status = resp.get("data") if resp.get("success") else None

            if not status:
                errors += 1
                detail = resp.get("details") or resp.get("error") or "status data missing"
                logger.warning(
                    "poll_error",
                    generate_uuid=generate_uuid,
                    attempt=attempts,
                    consecutive_errors=errors,
                    details=detail,
                )
                if max_consecutive_errors and errors >= max_consecutive_errors:
                    return PollOutcome(generate_uuid, FAILED_STATE, last_status, attempts, error=detail)
            else:
                errors = 0
                last_status = status
                if on_update is not None:
                    on_update(status)

                state = classify_status(status)
                logger.debug(
                    "poll_attempt",
                    generate_uuid=generate_uuid,
                    attempt=attempts,
                    state=state,
                    percent=status.get("percentCompleted"),
                )
                if state == SUCCEEDED:
                    logger.info("poll_succeeded", generate_uuid=generate_uuid, images=len(status["images"]))
                    return PollOutcome(generate_uuid, SUCCEEDED, status, attempts)
                if state == FAILED_STATE:
                    msg = status.get("generateMsg") or "generation failed"
                    logger.warning("poll_failed", generate_uuid=generate_uuid, msg=msg)
                    return PollOutcome(generate_uuid, FAILED_STATE, status, attempts, error=msg)

            if max_attempts and attempts >= max_attempts:
                return PollOutcome(generate_uuid, TIMED_OUT, last_status, attempts, error="max attempts reached")
            if timeout and time.monotonic() - start + interval > timeout:
                return PollOutcome(generate_uuid, TIMED_OUT, last_status, attempts, error="timed out")

            if stop_event.wait(interval):
                return PollOutcome(generate_uuid, CANCELLED, last_status, attempts)

    def generate_and_wait(self, request: Dict[str, Any], **poll_kwargs) -> PollOutcome:
        """Submit a generation request, then poll until it finishes."""
        resp = self.generate_image(request)
        generate_uuid = (resp.get("data") or {}).get("generateUuid") if resp.get("success") else None
        if not generate_uuid:
            detail = resp.get("details") or resp.get("error") or "no generateUuid returned"
            logger.error("generate_failed", details=detail)
            return PollOutcome("", FAILED_STATE, error=detail)
        logger.info("generate_submitted", generate_uuid=generate_uuid)
        return self.poll_status(generate_uuid, **poll_kwargs)
