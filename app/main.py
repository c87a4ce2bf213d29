from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from app.api.routes import router
from app.core.config import Config
from app.core.image_relay import ImageRelay
from app.core.remote_client import RunningHubClient
from app.core.upload_receiver import UploadReceiver
from app.core.workflows import WorkflowRegistry
from app.middleware.rate_limiter import RateLimiter, rate_limit_middleware
from app.middleware.error_handler import error_handler_middleware
from app.middleware.request_logger import request_logger_middleware
from app.middleware.timeout import timeout_middleware
import psutil
import logging


def create_app(
    config: Optional[Config] = None,
    registry: Optional[WorkflowRegistry] = None,
    client: Optional[RunningHubClient] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Build the relay application; collaborators can be injected for tests."""
    config = config or Config()
    # A malformed workflow file is fatal here
    registry = registry or WorkflowRegistry.load(config.workflows_file)
    client = client or RunningHubClient(
        base_url=config.runninghub_base_url,
        api_key=config.runninghub_api_key,
        node_id=config.runninghub_node_id,
        timeout_seconds=config.provider_timeout_seconds,
        result_poll_attempts=config.result_poll_attempts,
        result_poll_interval_seconds=config.result_poll_interval_seconds,
    )
    rate_limiter = rate_limiter or RateLimiter(
        max_requests=config.rate_limit_max_requests,
        window_seconds=config.rate_limit_window_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await client.aclose()

    app = FastAPI(
        title="Image Workflow Relay",
        description="Relays uploaded images to RunningHub workflows",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.rate_limiter = rate_limiter
    app.state.image_relay = ImageRelay(
        registry=registry,
        receiver=UploadReceiver(config.upload_dir, config.max_file_size_bytes),
        client=client,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Last added runs first: logging wraps rate limiting, which wraps everything else
    app.middleware("http")(timeout_middleware)
    app.middleware("http")(error_handler_middleware)
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_logger_middleware)

    app.include_router(router)

    @app.get("/health")
    async def health_check(request: Request):
        process = psutil.Process()
        memory_mb = process.memory_info().rss / 1024 / 1024
        return {
            "status": "healthy",
            "memory": {
                "current_mb": round(memory_mb, 1),
            },
            "workflows": len(request.app.state.image_relay.registry),
        }

    logging.info(f"Application created with {len(registry)} workflows")
    return app


if __name__ == "__main__":
    import uvicorn

    config = Config()
    uvicorn.run(create_app(config), host="0.0.0.0", port=config.port)
