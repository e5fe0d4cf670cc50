from fastapi import Request
from fastapi.security import HTTPBearer
from fastapi.security.http import HTTPAuthorizationCredentials

from ..exceptions import InvalidTokenException
from ..utils.auth import decode_token


class AccessTokenBearer(HTTPBearer):
    """
    Extracts the bearer token from the Authorization header and returns its decoded payload.
    """

    def __init__(self, auto_error: bool = False):
        super().__init__(auto_error=auto_error)


    async def __call__(self, request: Request) -> dict:
        credentials: HTTPAuthorizationCredentials = await super().__call__(request)

        if credentials is None or credentials.scheme.lower() != "bearer":
            raise InvalidTokenException()

        return decode_token(credentials.credentials)
