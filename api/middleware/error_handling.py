from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from api.schemas.responses import ErrorResponse
from core.logging import get_logger
from core.utils.exceptions import (
    AuthError,
    ConfigError,
    ContractSearchError,
    OrderError,
    PersistError,
    SyncError,
    TradeSyncException,
)

logger = get_logger("api.middleware.error_handling", component="api")

# Most specific first
_STATUS_BY_ERROR = (
    (ConfigError, 400),
    (AuthError, 502),
    (SyncError, 502),
    (OrderError, 502),
    (ContractSearchError, 502),
    (PersistError, 500),
)


def status_for(exc: TradeSyncException) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def trade_sync_exception_handler(request: Request, exc: TradeSyncException) -> JSONResponse:
    """Render domain errors as the structured error payload"""
    status_code = status_for(exc)
    logger.warning(
        "Administrative operation failed",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error=exc.message,
        status_code=status_code,
    )
    body = ErrorResponse(**exc.to_payload())
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TradeSyncException, trade_sync_exception_handler)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Global error handling middleware"""

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except HTTPException as e:
            # Let FastAPI handle HTTP exceptions normally
            raise e
        except Exception as e:
            logger.error(
                "Unhandled API exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
                exc_info=True
            )

            body = ErrorResponse(
                error="InternalServerError",
                message="An unexpected error occurred",
                details={"path": request.url.path},
            )
            return JSONResponse(status_code=500, content=body.model_dump(mode="json"))
