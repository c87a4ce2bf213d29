from fastapi import Request
import time
import uuid
import logging

REQUEST_ID_HEADER = "X-Request-ID"


async def request_logger_middleware(request: Request, call_next):
    """Tag each request with an id, echo it back and log the outcome."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    client_ip = request.client.host if request.client else "unknown"
    started = time.perf_counter()

    response = await call_next(request)

    elapsed_ms = (time.perf_counter() - started) * 1000
    level = logging.WARNING if response.status_code >= 400 else logging.INFO
    logging.log(
        level,
        f"[{request_id}] {client_ip} {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)",
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response
