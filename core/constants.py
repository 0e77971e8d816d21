"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → shareledger/)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent

APP_VERSION: str = "1.0.0"


class Defaults:
    """기본값 상수 (settings.yaml에 값이 없을 때 사용)"""

    WEB_HOST: str = "127.0.0.1"
    WEB_PORT: int = 8000

    LOG_LEVEL: str = "INFO"

    # 쓰기 재시도 (database is locked / busy)
    WRITE_RETRIES: int = 3
    RETRY_DELAY_MS: int = 50

    # 주주별 원장 조회 캐시
    CACHE_TTL_SEC: int = 30
    CACHE_MAX_ENTRIES: int = 1024

    # 주주 계좌번호 자동 생성 규칙: SH-000001
    EXTERNAL_ID_PREFIX: str = "SH"
    EXTERNAL_ID_WIDTH: int = 6

    # Capital Stock 리포트 상위 주주 수
    TOP_SHAREHOLDERS: int = 10


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    WEB_LOGS_DIR: Path = LOGS_DIR / "web"
    CLI_LOGS_DIR: Path = LOGS_DIR / "cli"

    # 설정 파일
    SETTINGS_FILE: Path = CONFIG_DIR / "settings.yaml"

    # DB 파일
    LEDGER_DB: Path = DATA_DIR / "shareledger.db"
