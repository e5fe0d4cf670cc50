from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, AsyncGenerator, List

from ..enums import UserRole
from ..exceptions import InactiveUserException, InvalidTokenException, PermissionRequiredException, UserNotFoundException
from ..core.token_bearer import AccessTokenBearer
from ..db.database import AsyncSessionLocal
from ..models.user import User
from ..services import AuthService, CategoryService, ProductService, ReportService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Asynchronous dependency that provides a database session for FastAPI routes.

    Yields:
        AsyncSession: An instance of the asynchronous database session.

    Usage:
        Use as a dependency in FastAPI endpoints to access the database session.
        The session is automatically closed after the request is processed.
    """

    async with AsyncSessionLocal() as db:
        yield db


def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


def get_category_service(db: AsyncSession = Depends(get_db)) -> CategoryService:
    return CategoryService(db)


def get_product_service(db: AsyncSession = Depends(get_db)) -> ProductService:
    return ProductService(db)


def get_report_service(db: AsyncSession = Depends(get_db)) -> ReportService:
    return ReportService(db)


async def get_current_user(
    token: dict = Depends(AccessTokenBearer()),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Retrieve the current authenticated user based on the provided access token.

    Args:
        token (dict): The decoded access token payload.
        auth_service (AuthService): Service bound to the request's database session.

    Returns:
        User: The user whose id is the token subject.

    Raises:
        InvalidTokenException: If the subject is missing or no longer exists.
        InactiveUserException: If the account has been deactivated.
    """
    try:
        user = await auth_service.get_user_by_id(int(token["sub"]))
    except (KeyError, ValueError, UserNotFoundException):
        raise InvalidTokenException()

    if not user.is_active:
        raise InactiveUserException()

    return user


class RoleChecker:
    """
    Dependency class for FastAPI route protection using Role Based Access Control (RBAC).

    Args:
        allowed_roles (List[UserRole]): Roles that are allowed to access the endpoint.

    Methods:
        __call__(current_user: User = Depends(get_current_user)) -> Any:
            Raises PermissionRequiredException (403) when the user's role is not allowed.
    """

    def __init__(self, allowed_roles: List[UserRole]):
        self.allowed_roles = allowed_roles


    async def __call__(self, current_user: User = Depends(get_current_user)) -> Any:
        if current_user.role in self.allowed_roles:
            return True

        raise PermissionRequiredException("You don't have the required role to access this endpoint!")


require_admin = RoleChecker([UserRole.ADMIN])
require_editor = RoleChecker([UserRole.ADMIN, UserRole.MANAGER])
