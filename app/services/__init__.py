from .auth_service import AuthService
from .category_service import CategoryService
from .product_service import ProductService
from .report_service import ReportService
