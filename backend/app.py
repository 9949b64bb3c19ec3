# backend/app.py

import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, Response

from config.settings import settings
from .liblib_client import LiblibAPIError, LiblibClient
from .logging_config import configure_logging
from .model import ApiResponse, GenerateResponse, HealthResponse, StatusResponse
from .utils import utc_now_iso

SERVICE_NAME = "liblibai-backend"
SERVICE_VERSION = "1.0.0"

# Content types for static files; anything else is served as octet-stream
MIME_TYPES = {
    ".html": "text/html",
    ".js": "text/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".woff": "application/font-woff",
    ".ttf": "application/font-ttf",
    ".eot": "application/vnd.ms-fontobject",
    ".otf": "application/font-otf",
    ".wasm": "application/wasm",
}

WELCOME_PAGE = """<!DOCTYPE html>
<html>
<head><title>LiblibAI proxy</title></head>
<body>
  <h1>LiblibAI proxy server</h1>
  <p>Try <a href="/api/health">/api/health</a> or <a href="/api/data">/api/data</a>.</p>
</body>
</html>
"""

configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
logger = structlog.get_logger(__name__)

app = FastAPI(title="LiblibAI Image Proxy", version=SERVICE_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        logger.info(
            "api_request",
            method=request.method,
            path=request.url.path,
            status=status,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )


def get_liblib_client() -> LiblibClient:
    return LiblibClient()


def envelope_ok(response: ApiResponse) -> dict:
    # success replies carry no error/details keys
    return response.model_dump(exclude={"error", "details"})


def envelope_error(status_code: int, error: str, details: Optional[str]) -> JSONResponse:
    body = ApiResponse(success=False, error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude={"data"}))


@app.get("/api/health")
async def health():
    """Lets the front end verify it can reach the server."""
    now = datetime.now()
    data = HealthResponse(
        status="ok",
        message="Server connection OK",
        timestamp=utc_now_iso(),
        serverTime=now.astimezone().strftime("%a %b %d %Y %H:%M:%S %Z"),
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
    )
    return envelope_ok(ApiResponse[HealthResponse](success=True, data=data))


@app.get("/api/data")
async def api_data():
    return envelope_ok(
        ApiResponse[dict](
            success=True,
            data={
                "message": "Hello from the LiblibAI proxy API",
                "timestamp": utc_now_iso(),
                "server": SERVICE_NAME,
            },
        )
    )


@app.post("/api/generate")
async def generate(request: Request, client: LiblibClient = Depends(get_liblib_client)):
    try:
        body = await request.json()
    except ValueError:
        return envelope_error(400, "generation failed", "Request body must be valid JSON")
    if not isinstance(body, dict):
        return envelope_error(400, "generation failed", "Request body must be a JSON object")

    logger.info("generate_request", template=body.get("templateUuid"))

    try:
        generate_uuid = await client.submit(body)
    except LiblibAPIError as e:
        return envelope_error(e.status_code or 500, "generation failed", e.message)
    except Exception as e:
        logger.exception("generate_failed")
        return envelope_error(500, "generation failed", str(e) or "unknown error")

    return envelope_ok(
        ApiResponse[GenerateResponse](success=True, data=GenerateResponse(generateUuid=generate_uuid))
    )


@app.get("/api/status/{generate_uuid}")
async def get_status(generate_uuid: str, client: LiblibClient = Depends(get_liblib_client)):
    logger.info("status_request", generate_uuid=generate_uuid)
    try:
        status = await client.fetch_status(generate_uuid)
    except LiblibAPIError as e:
        return envelope_error(e.status_code or 500, "status query failed", e.message)
    except Exception as e:
        logger.exception("status_failed", generate_uuid=generate_uuid)
        return envelope_error(500, "status query failed", str(e) or "unknown error")

    return envelope_ok(ApiResponse[StatusResponse](success=True, data=status))


def resolve_static_path(static_dir: str, file_path: str) -> Optional[Path]:
    """
    Map a URL path to a file under static_dir.
    Returns None for paths that escape the static root, touch dot-files or cannot be resolved.
    """
    try:
        root = Path(static_dir).resolve()
        target = (root / file_path.lstrip("/")).resolve()
    except (ValueError, OSError):
        # e.g. embedded NUL bytes
        return None
    if target != root and root not in target.parents:
        return None
    if any(part.startswith(".") for part in target.relative_to(root).parts):
        return None
    return target


@app.get("/")
async def root():
    index = Path(settings.STATIC_DIR) / "index.html"
    if index.is_file():
        return FileResponse(index, media_type="text/html")
    return HTMLResponse(WELCOME_PAGE)


# Must stay last: catches every GET not matched above
@app.get("/{file_path:path}")
async def serve_static(file_path: str):
    target = resolve_static_path(settings.STATIC_DIR, file_path)
    if target is None or not target.is_file():
        return envelope_error(404, "file not found", f"Requested file does not exist: /{file_path}")

    ext = target.suffix.lower()
    content_type = MIME_TYPES.get(ext, "application/octet-stream")
    try:
        content = target.read_bytes()
    except OSError as e:
        logger.error("static_read_failed", path=str(target), error=str(e))
        return envelope_error(500, "server error", e.strerror or "unknown error")
    return Response(content=content, media_type=content_type)
