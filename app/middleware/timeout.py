import asyncio
import time
from fastapi import Request
from fastapi.responses import JSONResponse
import logging


async def timeout_middleware(request: Request, call_next):
    """Middleware to time out processing requests after the configured duration."""
    if request.url.path.rstrip("/") != "/api/process-image":
        return await call_next(request)

    timeout_seconds = request.app.state.config.request_timeout_seconds
    start_time = time.time()

    try:
        return await asyncio.wait_for(call_next(request), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        elapsed_time = time.time() - start_time
        logging.error(f"Request timed out after {elapsed_time:.2f} seconds")

        return JSONResponse(
            status_code=504,
            content={
                "error": "Request timed out",
                "message": f"Request timed out after {timeout_seconds} seconds. Please try again later.",
            }
        )
