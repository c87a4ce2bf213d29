import json
from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.config import Config
from app.core.remote_client import RunningHubClient
from app.core.workflows import WorkflowRegistry
from app.main import create_app

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeProvider:
    """Simulated RunningHub API recording every call it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.responses: dict[str, Any] = {
            "/upload": {"code": 0, "msg": "success", "data": {"fileUrl": "https://cdn.test/in.png"}},
            "/task/openapi/create": {"code": 0, "msg": "success", "data": {"taskId": "task-1"}},
            "/task/openapi/outputs": {
                "code": 0,
                "msg": "success",
                "data": [{"fileUrl": "https://cdn.test/out.png", "fileType": "png"}],
            },
        }

    @property
    def paths(self) -> list[str]:
        return [path for path, _ in self.calls]

    def payload(self, path: str) -> Any:
        for call_path, body in self.calls:
            if call_path == path:
                return body
        raise AssertionError(f"{path} was not called")

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body: Any = request.read()
        if request.headers.get("content-type", "").startswith("application/json"):
            body = json.loads(body)
        self.calls.append((path, body))

        response = self.responses[path]
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    def client(self, **kwargs: Any) -> RunningHubClient:
        http_client = httpx.AsyncClient(
            base_url="https://provider.test",
            transport=httpx.MockTransport(self.handler),
        )
        return RunningHubClient(
            base_url="https://provider.test",
            api_key="test-key",
            node_id="7",
            http_client=http_client,
            **kwargs,
        )


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def config(tmp_path: Any, monkeypatch: pytest.MonkeyPatch) -> Config:
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("RUNNINGHUB_API_KEY", "test-key")
    return Config()


@pytest.fixture
def registry() -> WorkflowRegistry:
    return WorkflowRegistry.from_dict(
        {
            "enhance": {"function": "wf-enhance", "params": {"a": 1, "b": 2}},
            "cartoon": {"function": "wf-cartoon", "nodeId": "42"},
        }
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def client(config: Config, registry: WorkflowRegistry, provider: FakeProvider) -> Generator[TestClient, None, None]:
    app = create_app(config=config, registry=registry, client=provider.client())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def post_image(client: TestClient) -> Callable[..., httpx.Response]:
    def _post(
        function_type: str | None = "enhance",
        params: Any = None,
        filename: str = "photo.png",
        content: bytes = PNG_BYTES,
        content_type: str = "image/png",
    ) -> httpx.Response:
        data = {}
        if function_type is not None:
            data["functionType"] = function_type
        if params is not None:
            data["processingParams"] = params if isinstance(params, str) else json.dumps(params)
        return client.post(
            "/api/process-image",
            data=data,
            files={"image": (filename, content, content_type)},
        )

    return _post
