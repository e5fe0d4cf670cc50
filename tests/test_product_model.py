from datetime import datetime
from decimal import Decimal

import pytest

from app.models import Product
from app.schemas.product import ProductCreate, ProductResponse


class TestProductPricing:
    """Derived price values on the Product model"""

    def test_sale_price_below_price_is_on_sale(self):
        product = Product(price=Decimal("100.00"), sale_price=Decimal("80.00"), stock=5, min_stock=1)

        assert product.is_on_sale() is True
        assert product.get_current_price() == Decimal("80.00")
        assert product.get_discount_percentage() == 20

    def test_no_sale_price(self):
        product = Product(price=Decimal("100.00"), sale_price=None, stock=5, min_stock=1)

        assert product.is_on_sale() is False
        assert product.get_current_price() == Decimal("100.00")
        assert product.get_discount_percentage() == 0

    def test_sale_price_equal_to_price_is_not_a_sale(self):
        product = Product(price=Decimal("50.00"), sale_price=Decimal("50.00"), stock=5, min_stock=1)

        assert product.is_on_sale() is False
        assert product.get_current_price() == Decimal("50.00")

    def test_discount_is_rounded(self):
        product = Product(price=Decimal("30.00"), sale_price=Decimal("20.00"), stock=5, min_stock=1)

        # 33.33...%
        assert product.get_discount_percentage() == 33

    @pytest.mark.parametrize("stock,min_stock,in_stock,low_stock", [
        (0, 5, False, True),
        (3, 5, True, True),
        (5, 5, True, True),
        (6, 5, True, False),
    ])
    def test_stock_flags(self, stock, min_stock, in_stock, low_stock):
        product = Product(price=Decimal("1.00"), stock=stock, min_stock=min_stock)

        assert product.is_in_stock() is in_stock
        assert product.is_low_stock() is low_stock


class TestProductSchemas:

    def test_description_markup_is_sanitized(self):
        data = ProductCreate(
            name="Lamp",
            sku="LAMP-1",
            price=10,
            stock=1,
            description='<p>Bright <script>alert(1)</script><strong>lamp</strong></p>',
        )

        assert "<script>" not in data.description
        assert "<strong>lamp</strong>" in data.description

    def test_negative_price_is_rejected(self):
        with pytest.raises(ValueError):
            ProductCreate(name="Lamp", sku="LAMP-1", price=-1, stock=1)

    def test_response_carries_derived_fields(self):
        product = Product(
            id=1,
            name="Lamp",
            sku="LAMP-1",
            price=Decimal("100.00"),
            sale_price=Decimal("75.00"),
            stock=0,
            min_stock=2,
            status="active",
            is_featured=False,
            view_count=0,
        )
        product.created_at = product.updated_at = datetime(2024, 1, 1)

        response = ProductResponse.model_validate(product)

        assert response.is_on_sale is True
        assert response.current_price == 75.0
        assert response.discount_percentage == 25
        assert response.is_in_stock is False
        assert response.category is None
