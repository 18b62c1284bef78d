import logging
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse

from alertproc.core.exceptions import AlertProcessorException

logger = logging.getLogger("alertproc.errors")


def register_error_handlers(app):
    @app.exception_handler(AlertProcessorException)
    async def alert_processor_exception(request: Request, exc: AlertProcessorException):
        if exc.status_code >= 500:
            logger.error("Request failed code=%s path=%s detail=%s", exc.code, request.url.path, exc.details)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):  # noqa: BLE001
        correlation_id = uuid.uuid4().hex
        logger.exception("Unhandled error cid=%s path=%s method=%s", correlation_id, request.url.path, request.method)
        return JSONResponse(status_code=500, content={"error": "Internal server error", "cid": correlation_id})

    return app
