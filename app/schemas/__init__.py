from .auth_schema import (
    LoginRequest,
    LoginResponse,
)
from .user_schema import (
    CreateUser,
    UserProfileResponse,
    UserResponse,
)


__all__ = [
    # auth schemas
    "LoginRequest",
    "LoginResponse",

    # user schemas
    "CreateUser",
    "UserProfileResponse",
    "UserResponse",
]
