"""
Quiz Engine
Dependency injection components
"""

import logging
from dataclasses import dataclass
from typing import Optional, List

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from .database.connection import get_db
from .database.models import Quiz, UserRole
from .exceptions import AuthenticationException, AuthorizationException
from .utils.helpers import Clock, Shuffler, utcnow, random_shuffle

# Configure logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    """Principal resolved by the upstream identity layer"""
    id: str
    role: UserRole

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None)
) -> Optional[CurrentUser]:
    """Get the current principal from identity headers (optional)"""

    if not x_user_id:
        return None

    try:
        role = UserRole((x_user_role or "").strip().lower())
    except ValueError:
        raise AuthenticationException(
            "Unknown user role",
            details={"role": x_user_role}
        )

    return CurrentUser(id=x_user_id.strip(), role=role)


async def require_authentication(
    current_user: Optional[CurrentUser] = Depends(get_current_user)
) -> CurrentUser:
    """Require an authenticated principal"""

    if not current_user:
        raise AuthenticationException("Authentication required")

    return current_user


def require_role(allowed_roles: List[UserRole]):
    """Factory function to create role-based dependencies"""

    async def check_role(current_user: CurrentUser = Depends(require_authentication)) -> CurrentUser:
        if current_user.role not in allowed_roles:
            logger.warning(f"User {current_user.id} ({current_user.role.value}) denied; needs {allowed_roles}")
            raise AuthorizationException(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}",
                required_role=",".join(role.value for role in allowed_roles)
            )
        return current_user

    return check_role


# Pre-built role dependencies
require_student = require_role([UserRole.STUDENT])
require_teacher_or_admin = require_role([UserRole.TEACHER, UserRole.ADMIN])


class PermissionChecker:
    """Permission checking system"""

    @staticmethod
    def can_modify_quiz(current_user: CurrentUser, quiz: Quiz) -> bool:
        """Admins modify any quiz, teachers only their own"""
        if current_user.role == UserRole.ADMIN:
            return True

        if current_user.role == UserRole.TEACHER:
            return quiz.created_by_id == current_user.id

        return False

    @staticmethod
    def ensure_can_modify_quiz(current_user: CurrentUser, quiz: Quiz) -> None:
        if not PermissionChecker.can_modify_quiz(current_user, quiz):
            raise AuthorizationException("Only the quiz author or an admin may do this")


def get_clock() -> Clock:
    """Time source for lifecycle decisions"""
    return utcnow


def get_shuffler() -> Shuffler:
    """Ordering source for shuffled quizzes"""
    return random_shuffle


# Export main dependencies
__all__ = [
    # Authentication
    "CurrentUser",
    "get_current_user",
    "require_authentication",
    "require_role",
    "require_student",
    "require_teacher_or_admin",

    # Authorization
    "PermissionChecker",

    # Database
    "get_db",
    "AsyncSession",

    # Time and ordering
    "get_clock",
    "get_shuffler",
]
