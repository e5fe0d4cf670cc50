from dotenv import load_dotenv

load_dotenv()

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import Config
from app.core.logger import setup_logger
from app.db.database import init_db
from app.exceptions import (
    create_exception_handler,
    CategoryCycleException,
    CategoryExistsException,
    CategoryHasChildrenException,
    CategoryHasProductsException,
    CategoryNotFoundException,
    InactiveUserException,
    InvalidTokenException,
    InvalidUserCredentialsException,
    PermissionRequiredException,
    ProductNotFoundException,
    SkuExistsException,
    UserAlreadyExistsException,
    UserNotFoundException,
)
from app.middleware.auth_middleware import CustomAuthMiddleWare
from app.routers.auth import router as auth_router
from app.routers.categories import router as categories_router
from app.routers.products import router as products_router
from app.routers.reports import router as reports_router


logger = setup_logger("catalog")

api_prefix = Config.API_PREFIX
swagger_docs_url = f"{api_prefix}/docs"
redoc_docs_url = f"{api_prefix}/redoc"
openapi_url = f"{api_prefix}/openapi.json"


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"Catalog API started, serving under {api_prefix}")
    yield


app = FastAPI(
    docs_url=swagger_docs_url,
    redoc_url=redoc_docs_url,
    openapi_url=openapi_url,
    title="Catalog API",
    description="Product catalog management: hierarchical categories, products, reports and user authentication.",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware first
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE'],
    allow_headers=["*"],
)

# Add custom auth middleware after CORS (order matters!)
app.add_middleware(CustomAuthMiddleWare)    # custom authentication middleware

# Register endpoints
app.include_router(auth_router, prefix=f'{api_prefix}/auth', tags=["Authentication"])
app.include_router(categories_router, prefix=f'{api_prefix}/categories', tags=["Categories"])
app.include_router(products_router, prefix=f'{api_prefix}/products', tags=["Products"])
app.include_router(reports_router, prefix=f'{api_prefix}/reports', tags=["Reports"])


# Add a root endpoint for health check
@app.get("/")
async def root():
    return {
        "message": "Catalog API",
        "version": "1.0.0",
        "docs": swagger_docs_url,
        "status": "running"
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

# Register custom exceptions

# Auth-related exception handlers
app.add_exception_handler(InvalidTokenException, create_exception_handler(401, "Invalid or expired token provided!"))
app.add_exception_handler(InvalidUserCredentialsException, create_exception_handler(401, "Invalid user credentials."))
app.add_exception_handler(InactiveUserException, create_exception_handler(401, "This account is inactive."))
app.add_exception_handler(PermissionRequiredException, create_exception_handler(403, "You don't have permission to access this resource."))

# User-related exception handlers
app.add_exception_handler(UserAlreadyExistsException, create_exception_handler(409, "User with this email exists!"))
app.add_exception_handler(UserNotFoundException, create_exception_handler(404, "User not found."))

# Category-related exception handlers
app.add_exception_handler(CategoryNotFoundException, create_exception_handler(404, "Category not found."))
app.add_exception_handler(CategoryExistsException, create_exception_handler(409, "A category with this name already exists at the same level."))
app.add_exception_handler(CategoryCycleException, create_exception_handler(409, "Cannot move the category: it would create a cycle."))
app.add_exception_handler(CategoryHasProductsException, create_exception_handler(409, "Cannot delete a category that has products."))
app.add_exception_handler(CategoryHasChildrenException, create_exception_handler(409, "Cannot delete a category that has child categories."))

# Product-related exception handlers
app.add_exception_handler(ProductNotFoundException, create_exception_handler(404, "Product not found."))
app.add_exception_handler(SkuExistsException, create_exception_handler(409, "A product with this SKU already exists."))
