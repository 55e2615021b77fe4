"""
설정 로더

relay 설정 파일(JSON)을 로드하고 Pydantic 스키마로 검증합니다.
환경 변수와 CLI 인자를 덮어쓴 뒤 런타임 SupervisorConfig로 변환합니다.

우선순위: 기본값 < 설정 파일 < 환경 변수 < CLI 인자
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from stream_relay.common.errors import ConfigError, ErrorCode
from stream_relay.common.logging import get_logger
from stream_relay.domain.models.session import SupervisorConfig

from .schema import RelayConfig

logger = get_logger(__name__)

# 환경 변수 → 설정 필드
ENV_OVERRIDES: dict[str, str] = {
    "RELAY_SOURCE": "source",
    "RELAY_DESTINATION": "destination",
    "RELAY_RECONNECT_DELAY": "reconnect_delay",
    "RELAY_MAX_RETRIES": "max_retries",
    "RELAY_BACKOFF": "backoff",
}


class ConfigLoader:
    """relay 설정 로딩 및 변환을 담당합니다."""

    def __init__(self, default_path: str | None = None) -> None:
        self._default_path = Path(default_path) if default_path else None

    def load(
        self,
        path: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> RelayConfig:
        """
        기본값, 설정 파일, 환경 변수, CLI 인자를 순서대로 합칩니다.

        Args:
            path: 설정 파일 경로 (None이고 기본 경로도 없으면 파일 없이 진행)
            env: 환경 변수 (None이면 os.environ)
            overrides: CLI 인자 (값이 None인 항목은 무시)

        Raises:
            ConfigError: 파일 없음, 파싱 실패, 검증 실패
        """
        target = path or self._default_path
        if target:
            config = self.load_from_file(target)
        else:
            config = RelayConfig()

        config = self.apply_env(config, env)
        if overrides:
            config = self.apply_overrides(config, overrides)
        return config

    def load_from_file(self, path: str | Path | None = None) -> RelayConfig:
        """파일에서 설정을 로드하고 검증합니다."""
        target = Path(path) if path else self._default_path
        if target is None:
            raise ConfigError(
                ErrorCode.CONFIG_NOT_FOUND,
                "설정 파일 경로가 지정되지 않았습니다",
            )

        if not target.exists():
            raise ConfigError(
                ErrorCode.CONFIG_NOT_FOUND,
                f"설정 파일을 찾을 수 없습니다: {target}",
                config_path=str(target),
            )

        try:
            content = target.read_text(encoding="utf-8")
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigError(
                ErrorCode.CONFIG_PARSE_ERROR,
                f"설정 파일 파싱에 실패했습니다: {e}",
                config_path=str(target),
                details={"error": str(e)},
            ) from e

        if not isinstance(data, dict):
            raise ConfigError(
                ErrorCode.CONFIG_PARSE_ERROR,
                "설정 파일 최상위는 JSON 객체여야 합니다",
                config_path=str(target),
            )

        logger.debug("설정 파일 로드", config_path=str(target))
        return self.load_from_dict(data, config_path=str(target))

    def load_from_dict(
        self,
        data: Mapping[str, Any],
        config_path: str | None = None,
    ) -> RelayConfig:
        """딕셔너리에서 설정을 검증합니다."""
        try:
            return RelayConfig.model_validate(dict(data))
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False)
            logger.error("설정 검증 실패", errors=errors, config_path=config_path)
            field_name = ".".join(str(p) for p in errors[0]["loc"]) if errors else None
            raise ConfigError(
                ErrorCode.CONFIG_INVALID,
                "설정 검증에 실패했습니다",
                config_path=config_path,
                field_name=field_name or None,
                details={"errors": errors},
            ) from e

    def apply_env(
        self,
        config: RelayConfig,
        env: Mapping[str, str] | None = None,
    ) -> RelayConfig:
        """RELAY_* 환경 변수를 설정에 덮어씁니다."""
        environ = os.environ if env is None else env
        updates = {
            field: environ[key]
            for key, field in ENV_OVERRIDES.items()
            if environ.get(key)
        }
        if not updates:
            return config
        logger.debug("환경 변수 설정 적용", fields=sorted(updates))
        return self.apply_overrides(config, updates)

    def apply_overrides(
        self,
        config: RelayConfig,
        overrides: Mapping[str, Any],
    ) -> RelayConfig:
        """
        중첩 딕셔너리를 설정에 병합하고 다시 검증합니다.

        값이 None인 항목은 "지정되지 않음"으로 보고 건너뜁니다.
        """
        data = _deep_merge(config.model_dump(), overrides)
        return self.load_from_dict(data)

    def to_supervisor_config(self, config: RelayConfig) -> SupervisorConfig:
        """검증된 설정을 슈퍼바이저 런타임 설정으로 변환합니다."""
        try:
            return SupervisorConfig(
                source=config.source,
                destination=config.destination,
                reconnect_delay=config.reconnect_delay,
                max_attempts=config.max_retries,
            )
        except ValueError as e:
            raise ConfigError(ErrorCode.CONFIG_INVALID, str(e)) from e


def _deep_merge(base: dict[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
