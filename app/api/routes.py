from typing import Optional

from fastapi import APIRouter, File, Form, Request, UploadFile

from app.core.image_relay import ImageRelay

# Initialize router
router = APIRouter(prefix="/api")


def get_image_relay(request: Request) -> ImageRelay:
    return request.app.state.image_relay


@router.post("/process-image")
async def process_image(
    request: Request,
    image: Optional[UploadFile] = File(None),
    functionType: Optional[str] = Form(None),
    processingParams: Optional[str] = Form(None),
):
    """Relay an uploaded image to the workflow selected by functionType."""
    return await get_image_relay(request).process_image(image, functionType, processingParams)


@router.get("/function-types")
async def list_function_types(request: Request):
    return {"functionTypes": get_image_relay(request).registry.function_types()}
