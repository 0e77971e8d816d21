"""
타입 정의 모듈

Enum, Dataclass 등 핵심 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """호출자 권한"""

    SUPER_ADMIN = "SUPER_ADMIN"  # 모든 Entity 접근
    ADMIN = "ADMIN"  # 소속 Entity 관리
    USER = "USER"  # 소속 Entity 조회


class ShareholderType(str, Enum):
    """주주 유형"""

    INDIVIDUAL = "INDIVIDUAL"
    CORPORATION = "CORPORATION"
    PARTNERSHIP = "PARTNERSHIP"
    TRUST = "TRUST"
    OTHER = "OTHER"


# 쓰기 권한을 가진 Role
WRITE_ROLES: frozenset[Role] = frozenset({Role.SUPER_ADMIN, Role.ADMIN})


@dataclass(frozen=True)
class Caller:
    """호출자 (불변)

    외부 인증 계층이 확인한 사용자 정보.
    Ledger 코어는 created_by 기록에만 사용하고,
    권한 판단은 Web 계층에서 수행.
    """

    user_id: str
    entity_id: int
    role: Role

    @property
    def actor_id(self) -> str:
        """원장 기록용 행위자 ID"""
        return f"user:{self.user_id}"

    @property
    def can_write(self) -> bool:
        """쓰기 가능 여부"""
        return self.role in WRITE_ROLES

    def can_access(self, entity_id: int) -> bool:
        """Entity 접근 가능 여부

        SUPER_ADMIN은 모든 Entity, 그 외는 소속 Entity만.
        """
        if self.role == Role.SUPER_ADMIN:
            return True
        return self.entity_id == entity_id

    def target_entity(self, requested: int | None) -> int:
        """요청 대상 Entity 결정

        SUPER_ADMIN만 다른 Entity를 지정할 수 있음.
        """
        if self.role == Role.SUPER_ADMIN and requested is not None:
            return requested
        return self.entity_id

    @classmethod
    def system(cls, entity_id: int, name: str = "system") -> "Caller":
        """시스템 Caller 생성 (스크립트용)"""
        return cls(user_id=name, entity_id=entity_id, role=Role.SUPER_ADMIN)
