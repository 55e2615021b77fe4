"""
헬스 체크 및 상태 엔드포인트
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from stream_relay.application.supervisor.supervisor import SessionSupervisor
from stream_relay.domain.models.session import SupervisorState
from stream_relay.interface.api.dependencies import get_supervisor

router = APIRouter()


@router.get("/health/live")
async def health_live() -> dict[str, str]:
    """라이브니스 체크 (단순 200)."""
    return {"status": "live"}


@router.get("/health/ready")
async def health_ready(
    supervisor: SessionSupervisor = Depends(get_supervisor),
) -> JSONResponse:
    """레디니스 체크 (송출 중일 때만 200)."""
    state = supervisor.state
    ready = state == SupervisorState.STREAMING
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "not_ready",
            "state": state.value,
        },
    )


@router.get("/status")
async def status(
    supervisor: SessionSupervisor = Depends(get_supervisor),
) -> dict[str, Any]:
    """슈퍼바이저 상태 스냅샷."""
    return {
        "success": True,
        "data": supervisor.snapshot(),
    }
