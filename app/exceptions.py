from fastapi import Request
from fastapi.responses import JSONResponse
from typing import Any, Callable


class APIException(Exception):
    """ Base class for all exceptions in the Catalog API. """
    pass


class NotFoundException(APIException):
    """ Exception is raised when a referenced resource does not exist. """
    pass


class ConflictException(APIException):
    """ Exception is raised when a write would break a uniqueness or structural rule. """
    pass


class UnauthorizedException(APIException):
    """ Exception is raised when credentials are absent, invalid or belong to an inactive account. """
    pass


class ForbiddenException(APIException):
    """ Exception is raised when an authenticated user may not perform an action. """
    pass


class InvalidTokenException(UnauthorizedException):
    """ Exception is thrown when user provided an expired invalid token. """
    pass


class InvalidUserCredentialsException(UnauthorizedException):
    """ Exception is thrown when a user has provided invalid credentials. """
    pass


class InactiveUserException(UnauthorizedException):
    """ Exception is thrown when an inactive account tries to authenticate. """
    pass


class PermissionRequiredException(ForbiddenException):
    """ Exception is thrown when a user does not have permission to peform the current action or access an endpoint/resource. """
    pass


class UserAlreadyExistsException(ConflictException):
    """ Exception is thrown when a user has provided an email that exists. """
    pass


class UserNotFoundException(NotFoundException):
    """ Exception is thrown when a user is not found. """
    pass


class CategoryNotFoundException(NotFoundException):
    """ Exception is raised when a category id does not exist. """
    pass


class CategoryExistsException(ConflictException):
    """ Exception is raised when a sibling category already uses the name. """
    pass


class CategoryCycleException(ConflictException):
    """ Exception is raised when re-parenting would make a category its own ancestor. """
    pass


class CategoryHasProductsException(ConflictException):
    """ Exception is raised when deleting a category that still owns products. """
    pass


class CategoryHasChildrenException(ConflictException):
    """ Exception is raised when deleting a category that still has subcategories. """
    pass


class ProductNotFoundException(NotFoundException):
    """ Exception is raised when a product id does not exist. """
    pass


class SkuExistsException(ConflictException):
    """ Exception is raised when a SKU is already used by another product. """
    pass


def create_exception_handler(status_code: int, detail: Any) -> Callable[[Request, Exception], JSONResponse]:
    async def exception_handler(request: Request, exception: APIException):
        message = str(exception)
        return JSONResponse(
            content={"detail": message or detail},
            status_code=status_code
        )

    return exception_handler
