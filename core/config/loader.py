"""
설정 로더

settings.yaml 로드 및 애플리케이션 설정 생성
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from core.constants import PROJECT_ROOT, Defaults, Paths

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class WebConfig:
    """Web 서버 설정"""

    host: str
    port: int


@dataclass(frozen=True)
class LedgerConfig:
    """원장 쓰기/조회 설정

    불변 데이터 구조로 설정 변경 방지
    """

    write_retries: int
    retry_delay_ms: int
    cache_ttl_sec: int
    cache_max_entries: int


@dataclass(frozen=True)
class AppConfig:
    """애플리케이션 설정 (settings.yaml에서 로드)"""

    db_path: Path
    web: WebConfig
    ledger: LedgerConfig
    log_level: str


class SettingsLoadError(Exception):
    """Settings 로드 실패 예외"""

    pass


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """하위 섹션 조회 (없으면 빈 dict)"""
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise SettingsLoadError(f"settings.yaml의 '{name}' 섹션은 mapping이어야 합니다")
    return value


def _positive_int(section: dict[str, Any], key: str, default: int, minimum: int = 1) -> int:
    """정수 설정값 검증"""
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise SettingsLoadError(f"'{key}'는 정수여야 합니다: {value!r}")
    if value < minimum:
        raise SettingsLoadError(f"'{key}'는 {minimum} 이상이어야 합니다: {value}")
    return value


def _resolve_db_path(raw: str | None) -> Path:
    """DB 경로 결정 (상대 경로는 프로젝트 루트 기준)"""
    if not raw:
        return Paths.LEDGER_DB
    if raw == ":memory:":
        return Path(raw)
    path = Path(raw)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return path


def parse_settings(data: dict[str, Any]) -> AppConfig:
    """YAML 데이터에서 AppConfig 생성

    Args:
        data: yaml.safe_load 결과

    Returns:
        AppConfig 인스턴스

    Raises:
        SettingsLoadError: 값이 유효하지 않은 경우
    """
    database = _section(data, "database")
    web = _section(data, "web")
    ledger = _section(data, "ledger")
    logging_cfg = _section(data, "logging")

    log_level = str(logging_cfg.get("level", Defaults.LOG_LEVEL)).upper()
    if log_level not in VALID_LOG_LEVELS:
        raise SettingsLoadError(
            f"유효하지 않은 로그 레벨입니다: '{log_level}'. "
            f"유효한 값: {list(VALID_LOG_LEVELS)}"
        )

    return AppConfig(
        db_path=_resolve_db_path(database.get("path")),
        web=WebConfig(
            host=str(web.get("host", Defaults.WEB_HOST)),
            port=_positive_int(web, "port", Defaults.WEB_PORT),
        ),
        ledger=LedgerConfig(
            write_retries=_positive_int(ledger, "write_retries", Defaults.WRITE_RETRIES),
            retry_delay_ms=_positive_int(
                ledger, "retry_delay_ms", Defaults.RETRY_DELAY_MS, minimum=0
            ),
            cache_ttl_sec=_positive_int(
                ledger, "cache_ttl_sec", Defaults.CACHE_TTL_SEC, minimum=0
            ),
            cache_max_entries=_positive_int(
                ledger, "cache_max_entries", Defaults.CACHE_MAX_ENTRIES
            ),
        ),
        log_level=log_level,
    )


def load_settings(path: Path | None = None) -> AppConfig:
    """settings.yaml 파일 로드

    파일이 없으면 기본값으로 동작.

    Args:
        path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        AppConfig 인스턴스

    Raises:
        SettingsLoadError: 형식이 잘못된 경우
    """
    if path is None:
        path = Paths.SETTINGS_FILE

    if not path.exists():
        logger.info(f"settings.yaml 없음, 기본 설정 사용: {path}")
        return parse_settings({})

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SettingsLoadError(f"settings.yaml 파싱 실패: {e}") from e

    if data is None:
        return parse_settings({})

    if not isinstance(data, dict):
        raise SettingsLoadError("settings.yaml 최상위는 mapping이어야 합니다")

    return parse_settings(data)


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    settings.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _config: AppConfig | None = None

    def __new__(cls, settings_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, settings_path: Path | None = None) -> None:
        if self._config is None:
            type(self)._config = load_settings(settings_path)

    @property
    def config(self) -> AppConfig:
        """전체 설정"""
        assert self._config is not None
        return self._config

    @property
    def db_path(self) -> Path:
        """원장 DB 경로"""
        return self.config.db_path

    @property
    def web(self) -> WebConfig:
        """Web 서버 설정"""
        return self.config.web

    @property
    def ledger(self) -> LedgerConfig:
        """원장 설정"""
        return self.config.ledger

    @property
    def log_level(self) -> int:
        """로그 레벨 (logging 상수)"""
        return logging.getLevelName(self.config.log_level)

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._config = None


def get_settings(settings_path: Path | None = None) -> Settings:
    """Settings 인스턴스 반환

    Args:
        settings_path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(settings_path)
