"""
pytest 공통 fixture 정의

설정 파일 / 임시 디렉토리 fixture
"""

import tempfile
from pathlib import Path

import pytest

from core.config.loader import Settings


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_settings_file(temp_dir: Path) -> Path:
    """테스트용 settings.yaml 파일 생성"""
    settings_content = f"""# 테스트용 settings.yaml
database:
  path: {(temp_dir / "ledger.db").as_posix()}

web:
  host: 0.0.0.0
  port: 9000

ledger:
  write_retries: 5
  retry_delay_ms: 10
  cache_ttl_sec: 60
  cache_max_entries: 16

logging:
  level: debug
"""
    settings_path = temp_dir / "settings.yaml"
    settings_path.write_text(settings_content, encoding="utf-8")
    return settings_path


@pytest.fixture
def temp_settings_file_invalid_level(temp_dir: Path) -> Path:
    """잘못된 로그 레벨의 settings.yaml 파일 생성"""
    settings_path = temp_dir / "settings_invalid.yaml"
    settings_path.write_text("logging:\n  level: LOUD\n", encoding="utf-8")
    return settings_path


@pytest.fixture(autouse=True)
def reset_settings():
    """테스트 간 Settings 싱글턴 초기화"""
    Settings.reset()
    yield
    Settings.reset()
