"""
FastAPI 애플리케이션

라우터 등록, 원장 예외 → HTTP 응답 변환 및 앱 설정.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config.loader import get_settings
from core.constants import APP_VERSION
from core.ledger.cache import BookEntryCache
from core.ledger.errors import (
    DuplicateShareholderError,
    InsufficientSharesError,
    LedgerConflictError,
    LedgerError,
    NotFoundError,
    TaxonomyConflictError,
)
from core.ledger.locks import KeyedLock
from core.logging import setup_logging

# 로깅 설정 (콘솔 + 파일)
setup_logging("web", console_level=get_settings().log_level)

from web.routes import health, ledger, reports, shareholders, stock_types

logger = logging.getLogger(__name__)

# 409 Conflict로 응답하는 예외
CONFLICT_ERRORS: tuple[type[LedgerError], ...] = (
    InsufficientSharesError,
    DuplicateShareholderError,
    TaxonomyConflictError,
    LedgerConflictError,
)


def error_status(exc: LedgerError) -> int:
    """원장 예외 → HTTP 상태 코드

    404: 대상 없음
    409: 잔고 부족 / 중복 / 변경 불가 / 쓰기 충돌
    400: 그 외 검증 오류
    """
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, CONFLICT_ERRORS):
        return 409
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 생명주기 관리"""
    from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema

    settings = get_settings()

    # 시작 시 - DB 스키마 자동 초기화
    async with SQLiteAdapter(settings.db_path) as db:
        await init_schema(db)

    # 요청 간 공유 상태
    app.state.ledger_locks = KeyedLock()
    app.state.book_cache = BookEntryCache(
        ttl_seconds=settings.ledger.cache_ttl_sec,
        max_entries=settings.ledger.cache_max_entries,
    )
    logger.info(f"Web: 원장 DB 준비 완료 ({settings.db_path})")

    yield

    app.state.book_cache.clear()


app = FastAPI(
    title="ShareLedger API",
    description="멀티 테넌트 주주명부 / 주식 원장 API",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS 설정 (개발용)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================================================================
# 예외 처리
# =========================================================================


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """원장 예외 → {"success": false, "error": {...}}"""
    status_code = error_status(exc)
    if status_code == 409:
        logger.info(f"{request.method} {request.url.path} 거부: {exc.code} {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": exc.to_dict()},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """입력값 오류 → 400"""
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": {"code": "INVALID_INPUT", "message": str(exc)}},
    )


# =========================================================================
# API 라우터 등록
# =========================================================================

app.include_router(health.router)
app.include_router(stock_types.router)
app.include_router(shareholders.router)
app.include_router(ledger.router)
app.include_router(reports.router)
