"""
의존성 주입

FastAPI의 Depends를 사용한 의존성 관리.
"""

from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Query, Request

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import Settings, get_settings
from core.ledger.cache import BookEntryCache
from core.ledger.engine import BalanceEngine
from core.ledger.locks import KeyedLock
from core.types import Caller, Role


def get_app_settings() -> Settings:
    """애플리케이션 설정 반환"""
    return get_settings()


async def get_db(
    settings: Settings = Depends(get_app_settings),
) -> AsyncGenerator[SQLiteAdapter, None]:
    """DB 세션 반환 (읽기 전용)

    조회 API 전용.
    """
    async with SQLiteAdapter(settings.db_path, readonly=True) as db:
        yield db


async def get_db_write(
    settings: Settings = Depends(get_app_settings),
) -> AsyncGenerator[SQLiteAdapter, None]:
    """DB 세션 반환 (쓰기 가능)

    원장 쓰기, 주식 종류/주주 관리 시 사용.
    """
    async with SQLiteAdapter(settings.db_path, readonly=False) as db:
        yield db


# =========================================================================
# 앱 공유 상태 (요청 간 공유)
# =========================================================================


def get_ledger_locks(request: Request) -> KeyedLock:
    """잔고 키 락 (앱 전체 공유)"""
    locks = getattr(request.app.state, "ledger_locks", None)
    if locks is None:
        locks = KeyedLock()
        request.app.state.ledger_locks = locks
    return locks


def get_book_cache(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> BookEntryCache:
    """주주별 원장 캐시 (앱 전체 공유)"""
    cache = getattr(request.app.state, "book_cache", None)
    if cache is None:
        cache = BookEntryCache(
            ttl_seconds=settings.ledger.cache_ttl_sec,
            max_entries=settings.ledger.cache_max_entries,
        )
        request.app.state.book_cache = cache
    return cache


async def get_engine(
    db: SQLiteAdapter = Depends(get_db_write),
    locks: KeyedLock = Depends(get_ledger_locks),
    cache: BookEntryCache = Depends(get_book_cache),
    settings: Settings = Depends(get_app_settings),
) -> BalanceEngine:
    """요청별 Balance Engine (락/캐시는 공유)"""
    return BalanceEngine(
        db,
        locks=locks,
        cache=cache,
        write_retries=settings.ledger.write_retries,
        retry_delay_ms=settings.ledger.retry_delay_ms,
    )


# =========================================================================
# 호출자 / 권한
# =========================================================================


def get_caller(
    x_user_id: str | None = Header(default=None),
    x_entity_id: int | None = Header(default=None),
    x_user_role: Role = Header(default=Role.USER),
) -> Caller:
    """인증 계층이 전달한 호출자 정보

    Raises:
        HTTPException(401): 사용자/Entity 헤더 누락
    """
    if not x_user_id or x_entity_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return Caller(user_id=x_user_id, entity_id=x_entity_id, role=x_user_role)


def get_entity_id(
    caller: Caller = Depends(get_caller),
    entity_id: int | None = Query(default=None, description="대상 Entity (SUPER_ADMIN 전용)"),
) -> int:
    """요청 대상 Entity ID

    Raises:
        HTTPException(403): 다른 Entity 접근
    """
    if entity_id is not None and not caller.can_access(entity_id):
        raise HTTPException(status_code=403, detail="Access to this entity is not allowed")
    return caller.target_entity(entity_id)


def require_write(caller: Caller = Depends(get_caller)) -> Caller:
    """쓰기 권한 확인 (ADMIN 이상)"""
    if not caller.can_write:
        raise HTTPException(status_code=403, detail="Admin role required")
    return caller


def require_super_admin(caller: Caller = Depends(get_caller)) -> Caller:
    """SUPER_ADMIN 권한 확인"""
    if caller.role != Role.SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="Super admin role required")
    return caller
