from fastapi import Request
from fastapi.responses import JSONResponse
import logging
import traceback

from app.core.exceptions import RelayError, RemoteError


async def error_handler_middleware(request: Request, call_next):
    try:
        return await call_next(request)
    except RelayError as e:
        if isinstance(e, RemoteError):
            logging.error(f"Provider error on {request.url.path}: {type(e).__name__}: {str(e)}")
        else:
            logging.warning(f"Rejected request to {request.url.path}: {type(e).__name__}: {str(e)}")
        return JSONResponse(status_code=e.status_code, content=e.to_content())
    except Exception as e:
        # Log the error
        logging.error(f"Error processing request: {str(e)}")
        logging.error("Full traceback:")
        logging.error(traceback.format_exc())

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": str(e),
            }
        )
