"""FastAPI application exposing an in-process pool engine for simulation."""

import os

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from clamm import __version__
from clamm.api.endpoints import error_status, router
from clamm.errors import ClammError

logger = structlog.get_logger()

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("CLAMM_HOST", "0.0.0.0")
PORT = int(os.environ.get("CLAMM_PORT", "8000"))
DEBUG = os.environ.get("CLAMM_DEBUG", "false").lower() in ("true", "1", "yes")

# Maximum request body size (1 MB)
MAX_REQUEST_SIZE = 1024 * 1024

app = FastAPI(
    title="CLAMM Pool Engine",
    description="Concentrated-liquidity pool manager with hooks and settlement sessions",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


@app.exception_handler(ClammError)
async def engine_error_handler(request: Request, exc: ClammError) -> JSONResponse:
    """Render engine errors as {code, detail}."""
    status_code = error_status(exc)
    logger.info("engine_error", path=request.url.path, code=exc.code, status=status_code)
    return JSONResponse(status_code=status_code, content={"code": exc.code, "detail": str(exc)})


app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def run() -> None:
    """Run the engine API server.

    Configuration via environment variables:
    - CLAMM_HOST: Host to bind to (default: 0.0.0.0)
    - CLAMM_PORT: Port to bind to (default: 8000)
    - CLAMM_DEBUG: Enable debug/reload mode (default: false)
    """
    uvicorn.run(
        "clamm.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
