from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..core.config import Config


api_prefix = Config.API_PREFIX.rstrip("/")


class CustomAuthMiddleWare(BaseHTTPMiddleware):
    """
    Custom authentication middleware for FastAPI applications.
    This middleware intercepts incoming HTTP requests and enforces authentication
    for protected routes. Documentation, the authentication routes and catalog
    reads (GET on categories and products, except their stats and stock
    lists) are public. For all other routes, it checks for the presence of the
    "Authorization" header and returns a 401 Unauthorized response when it is
    missing.

    Token validity and roles are checked later by the route dependencies.
    """

    # Matched exactly; "" is the root path
    exact_paths = ["", "/health", "/favicon.ico"]

    allowed_paths = [
        # Documentation endpoints
        f"{api_prefix}/openapi.json",
        f"{api_prefix}/docs",
        f"{api_prefix}/redoc",

        # Authentication endpoints
        f"{api_prefix}/auth/login",
        f"{api_prefix}/auth/register",
        f"{api_prefix}/auth/setup-initial-admin",
    ]

    public_read_paths = [
        f"{api_prefix}/categories",
        f"{api_prefix}/products",
    ]

    # Inventory figures under the public prefixes still need a token
    private_read_paths = [
        f"{api_prefix}/categories/stats",
        f"{api_prefix}/products/stats",
        f"{api_prefix}/products/low-stock",
        f"{api_prefix}/products/out-of-stock",
    ]

    async def dispatch(self, request: Request, call_next):
        # Always allow OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path.rstrip("/")

        if path in self.exact_paths:
            return await call_next(request)

        if any(path == prefix or path.startswith(prefix + "/") for prefix in self.allowed_paths):
            return await call_next(request)

        if request.method == "GET" and path not in self.private_read_paths and any(
            path == prefix or path.startswith(prefix + "/") for prefix in self.public_read_paths
        ):
            return await call_next(request)

        if "Authorization" not in request.headers:
            return JSONResponse(
                content={
                    "detail": "Not authenticated! Please login again to proceed.",
                },
                status_code=401
            )

        return await call_next(request)
