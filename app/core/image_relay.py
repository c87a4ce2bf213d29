import json
import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from fastapi import UploadFile
from fastapi.responses import JSONResponse

from app.core.exceptions import InvalidProcessingParams, MissingFunctionType
from app.core.remote_client import RunningHubClient
from app.core.upload_receiver import UploadReceiver
from app.core.workflows import WorkflowRegistry, merge_params


class RequestState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    WORKFLOW_RESOLVED = "workflow_resolved"
    ASSET_UPLOADED = "asset_uploaded"
    TASK_CREATED = "task_created"
    RESULT_FETCHED = "result_fetched"
    RESPONDED = "responded"
    ERRORED = "errored"


@dataclass
class ProcessingRequest:
    request_id: str
    function_type: Optional[str]
    override_params: dict[str, Any]
    start_time: datetime
    uploaded_file_path: Optional[str] = None
    task_id: Optional[str] = None
    result_url: Optional[str] = None
    state: RequestState = RequestState.RECEIVED
    history: list[RequestState] = field(default_factory=list)

    def advance(self, state: RequestState):
        self.history.append(self.state)
        self.state = state
        logging.info(f"Request {self.request_id}: {self.history[-1].value} -> {state.value}")


def parse_processing_params(raw: Optional[str]) -> dict[str, Any]:
    """Parse the optional processingParams form field into a dict."""
    if raw is None or not raw.strip():
        return {}
    try:
        params = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidProcessingParams(f"processingParams is not valid JSON: {e.msg}") from e
    if not isinstance(params, dict):
        raise InvalidProcessingParams("processingParams must be a JSON object")
    return params


class ImageRelay:
    """Relays an uploaded image to the workflow provider and returns the result URL."""

    def __init__(self, registry: WorkflowRegistry, receiver: UploadReceiver, client: RunningHubClient):
        self.registry = registry
        self.receiver = receiver
        self.client = client

    async def process_image(
        self,
        file: Optional[UploadFile],
        function_type: Optional[str],
        processing_params: Optional[str] = None,
    ) -> JSONResponse:
        request = ProcessingRequest(
            request_id=str(uuid.uuid4()),
            function_type=function_type,
            override_params={},
            start_time=datetime.now(),
        )
        logging.info(f"Request {request.request_id}: received file {file.filename if file else None} "
                     f"for function type {function_type!r}")

        try:
            async with self.receiver.stored(file) as stored:
                request.uploaded_file_path = stored.path
                request.advance(RequestState.VALIDATED)

                if not function_type:
                    raise MissingFunctionType()
                workflow = self.registry.lookup(function_type)
                request.override_params = parse_processing_params(processing_params)
                params = merge_params(workflow.default_params, request.override_params)
                request.advance(RequestState.WORKFLOW_RESOLVED)

                asset_url = await self.client.upload_asset(stored.path)
                request.advance(RequestState.ASSET_UPLOADED)

                request.task_id = await self.client.create_task(
                    workflow.function_identifier, params, asset_url, node_id=workflow.node_id
                )
                request.advance(RequestState.TASK_CREATED)

                request.result_url = await self.client.fetch_result(request.task_id)
                request.advance(RequestState.RESULT_FETCHED)
        except BaseException:
            request.advance(RequestState.ERRORED)
            raise

        request.advance(RequestState.RESPONDED)
        elapsed = (datetime.now() - request.start_time).total_seconds()
        logging.info(f"Request {request.request_id} completed in {elapsed:.2f}s")
        return JSONResponse(
            status_code=200,
            content={
                "status": "completed",
                "resultUrl": request.result_url,
                "message": "Image processed successfully",
            },
        )
