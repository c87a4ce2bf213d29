import os
import asyncio
import logging
from typing import Any, Mapping, Optional, Type

import httpx

from app.core.exceptions import (
    RemoteError,
    RemoteResultError,
    RemoteTaskCreationError,
    RemoteUploadError,
)


class RunningHubClient:
    """Client for the RunningHub workflow API.

    Every response carries an envelope ``{"code": int, "msg": str, "data": ...}``
    where ``code == 0`` means success. The HTTP status alone is not trusted.
    """

    UPLOAD_PATH = "/upload"
    CREATE_TASK_PATH = "/task/openapi/create"
    OUTPUTS_PATH = "/task/openapi/outputs"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        node_id: str = "",
        timeout_seconds: float = 30,
        result_poll_attempts: int = 1,
        result_poll_interval_seconds: float = 2,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.node_id = node_id
        self.result_poll_attempts = max(1, result_poll_attempts)
        self.result_poll_interval_seconds = result_poll_interval_seconds
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
        )
        logging.info(f"RunningHubClient initialized for {base_url} (timeout={timeout_seconds}s)")

    async def aclose(self):
        await self._client.aclose()

    async def _post(self, path: str, error_cls: Type[RemoteError], **kwargs) -> Any:
        """POST to the provider and return the envelope's data, raising error_cls on failure."""
        try:
            response = await self._client.post(path, **kwargs)
        except httpx.TimeoutException as e:
            raise error_cls(f"Provider request timed out: {path}") from e
        except httpx.HTTPError as e:
            raise error_cls(f"Provider network error: {str(e)}") from e

        try:
            envelope = response.json()
        except ValueError as e:
            raise error_cls(f"Provider returned a non-JSON response (HTTP {response.status_code})") from e

        if not isinstance(envelope, dict):
            raise error_cls(f"Provider returned an unexpected response (HTTP {response.status_code})")

        code = envelope.get("code")
        if code != 0:
            message = envelope.get("msg") or f"Provider error code {code}"
            logging.warning(f"Provider call {path} failed with code {code}: {message}")
            raise error_cls(message)

        return envelope.get("data")

    async def upload_asset(self, file_path: str) -> str:
        """Stream a stored image to the provider and return the provider's URL for it."""
        # httpx reads the handle in chunks while sending the multipart body
        with open(file_path, "rb") as f:
            data = await self._post(
                self.UPLOAD_PATH,
                RemoteUploadError,
                files={"file": (os.path.basename(file_path), f)},
                data={"apiKey": self.api_key},
            )
        if not isinstance(data, dict) or not data.get("fileUrl"):
            raise RemoteUploadError("Provider response is missing fileUrl")

        logging.info(f"Uploaded asset {file_path} -> {data['fileUrl']}")
        return data["fileUrl"]

    def _node_info_list(self, node_id: str, params: Mapping[str, Any], asset_url: str) -> list[dict]:
        node_info = [{"nodeId": node_id, "fieldName": "image", "fieldValue": asset_url}]
        for field_name, value in params.items():
            if field_name == "image":
                continue
            node_info.append({"nodeId": node_id, "fieldName": field_name, "fieldValue": value})
        return node_info

    async def create_task(
        self,
        function_identifier: str,
        params: Mapping[str, Any],
        asset_url: str,
        node_id: Optional[str] = None,
    ) -> str:
        """Create a workflow task bound to the uploaded asset and return its id."""
        payload = {
            "workflowId": function_identifier,
            "apiKey": self.api_key,
            "nodeInfoList": self._node_info_list(node_id or self.node_id, params, asset_url),
        }
        data = await self._post(self.CREATE_TASK_PATH, RemoteTaskCreationError, json=payload)
        if not isinstance(data, dict) or not data.get("taskId"):
            raise RemoteTaskCreationError("Provider response is missing taskId")

        task_id = str(data["taskId"])
        logging.info(f"Created task {task_id} for workflow {function_identifier}")
        return task_id

    async def fetch_result(self, task_id: str) -> str:
        """Fetch the task outputs and return the first output's file URL."""
        payload = {"taskId": task_id, "apiKey": self.api_key}

        for attempt in range(1, self.result_poll_attempts + 1):
            outputs = await self._post(self.OUTPUTS_PATH, RemoteResultError, json=payload)
            if outputs:
                break
            logging.info(f"Task {task_id} has no outputs yet (attempt {attempt}/{self.result_poll_attempts})")
            if attempt < self.result_poll_attempts:
                await asyncio.sleep(self.result_poll_interval_seconds)
        else:
            raise RemoteResultError("empty outputs")

        if not isinstance(outputs, list) or not isinstance(outputs[0], dict) or not outputs[0].get("fileUrl"):
            raise RemoteResultError("Provider response is missing fileUrl")

        result_url = outputs[0]["fileUrl"]
        logging.info(f"Task {task_id} result: {result_url}")
        return result_url
