"""
Global error handling middleware.

Uses pure ASGI middleware (not BaseHTTPMiddleware) to avoid breaking
async generator dependencies like get_db_session().
"""
import json
from typing import Any

from fastapi import HTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from storefront.core.errors import AppError, ErrorCode
from storefront.core.logging import get_logger

logger = get_logger(__name__)


def error_body(error: dict[str, Any], request_id: str | None) -> bytes:
    payload: dict[str, Any] = {"success": False, "error": error}
    if request_id:
        payload["requestId"] = request_id
    return json.dumps(payload, default=str).encode("utf-8")


class ErrorHandlerMiddleware:
    """
    Renders AppError and unhandled exceptions as JSON.

    ``{"success": false, "error": {"code", "message", "details?"}, "requestId"}``

    HTTPException passes through to FastAPI's own handler.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except HTTPException:
            raise
        except Exception as e:
            path = scope.get("path", "unknown")
            if response_started:
                logger.exception("Exception after response started", error=str(e), path=path)
                raise

            request_id = scope.get("state", {}).get("request_id")

            if isinstance(e, AppError):
                log = logger.warning if e.status_code < 500 else logger.error
                log(
                    "Application error",
                    code=e.code.value if isinstance(e.code, ErrorCode) else str(e.code),
                    message=e.message,
                    status_code=e.status_code,
                    path=path,
                )
                status_code = e.status_code
                body = error_body(e.to_dict(), request_id)
            else:
                logger.exception("Unhandled exception", error=str(e), path=path)
                status_code = 500
                body = error_body(
                    {
                        "code": ErrorCode.INTERNAL_SERVER_ERROR.value,
                        "message": "An unexpected error occurred",
                    },
                    request_id,
                )

            await send({
                "type": "http.response.start",
                "status": status_code,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode()),
                ],
            })
            await send({
                "type": "http.response.body",
                "body": body,
            })
