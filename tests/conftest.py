import os

# 모듈 임포트 시 기본 로깅 설정을 건너뜀
os.environ.setdefault("RELAY_SKIP_DEFAULT_LOGGING", "1")

import pytest  # noqa: E402

from stream_relay.application.supervisor.shutdown import ShutdownToken  # noqa: E402
from stream_relay.domain.models.session import SupervisorConfig  # noqa: E402


@pytest.fixture
def token() -> ShutdownToken:
    return ShutdownToken()


@pytest.fixture
def relay_config() -> SupervisorConfig:
    return SupervisorConfig(
        source="rtsp://localhost:8554/cam1",
        destination="srt://127.0.0.1:8890?streamid=publish:cam1",
        reconnect_delay=5.0,
        max_attempts=3,
    )


@pytest.fixture(autouse=True)
def _clear_relay_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "RELAY_SOURCE",
        "RELAY_DESTINATION",
        "RELAY_RECONNECT_DELAY",
        "RELAY_MAX_RETRIES",
        "RELAY_BACKOFF",
    ):
        monkeypatch.delenv(key, raising=False)
