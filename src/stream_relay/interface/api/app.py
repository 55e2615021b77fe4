"""
FastAPI 애플리케이션 팩토리

Interface Layer에서만 FastAPI에 의존합니다.
예외 핸들러, 라우터 등록을 담당합니다.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stream_relay import __version__
from stream_relay.application.supervisor.supervisor import SessionSupervisor
from stream_relay.common.errors import RelayError
from stream_relay.common.logging import get_logger
from stream_relay.interface.api.dependencies import AppContext, set_app_context
from stream_relay.interface.api.routes import health

logger = get_logger(__name__, component="api")


def create_app(supervisor: SessionSupervisor | None = None) -> FastAPI:
    """
    FastAPI 애플리케이션을 생성합니다.

    Args:
        supervisor: 상태를 노출할 슈퍼바이저 (None이면 나중에 set_app_context로 주입)
    """
    app = FastAPI(title="stream-relay status API", version=__version__)

    if supervisor is not None:
        set_app_context(app, AppContext(supervisor=supervisor))

    # 예외 핸들러 등록
    @app.exception_handler(RelayError)
    async def handle_relay_error(_: Request, exc: RelayError) -> JSONResponse:
        """RelayError → JSON 응답 매핑."""
        logger.error(
            "RelayError 발생",
            code=exc.code.value,
            error_msg=exc.message,
            details=exc.details,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content={"success": False, **exc.to_dict()},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
        """알 수 없는 예외 → 500 응답."""
        logger.error("알 수 없는 오류", error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "서버 오류가 발생했습니다"},
        )

    app.include_router(health.router)

    return app
