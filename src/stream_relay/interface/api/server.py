"""
상태 API 서버

uvicorn을 데몬 스레드에서 실행합니다. 메인 스레드는 슈퍼바이저가 사용하므로
시그널 처리는 uvicorn이 아닌 main.py가 담당합니다.
"""

from __future__ import annotations

import threading

import uvicorn
from fastapi import FastAPI

from stream_relay.common.logging import get_logger

logger = get_logger(__name__, component="api")


class StatusServer:
    """백그라운드 uvicorn 서버."""

    def __init__(self, app: FastAPI, host: str = "127.0.0.1", port: int = 8080) -> None:
        self.host = host
        self.port = port
        self._server = uvicorn.Server(
            uvicorn.Config(app, host=host, port=port, log_level="warning", access_log=False)
        )
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._thread = threading.Thread(
            target=self._server.run,
            name="status-api",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"상태 API 시작: http://{self.host}:{self.port}", host=self.host, port=self.port)

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._server.should_exit = True
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("상태 API 종료 타임아웃")
        else:
            logger.info("상태 API 종료")
        self._thread = None
