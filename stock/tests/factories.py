from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.hashers import make_password
from django.utils import timezone

from main.models import Brand, User
from main.services.role_service import RoleService
from stock.models import BOM, BOMMaterial, FinishedProduct, RawMaterial


def make_brand(code="ECO-001", name="EcoFresh Foods", **extra):
    return Brand.objects.create(code=code, name=name, **extra)


def make_user(role="admin", email=None, password="Secret@123", **extra):
    user = User(
        username=extra.pop("username", role),
        email=email or f"{role}@trackiq.test",
        password=make_password(password),
        role=role,
        **extra,
    )
    RoleService.apply_defaults(user)
    user.save()
    return user


def make_material(brand, code="RM-001", stock=Decimal("1000"), cost=Decimal("2.5"), unit="kg", **extra):
    defaults = {
        "name": "Organic Wheat Flour",
        "category": "Flour",
        "stock_minimum": Decimal("100"),
        "stock_maximum": Decimal("5000"),
    }
    defaults.update(extra)
    return RawMaterial.objects.create(
        brand=brand, code=code, unit=unit, stock_current=stock, cost_per_unit=cost, **defaults
    )


def make_product(brand, code="FP-001", **extra):
    defaults = {
        "name": "Organic Whole Wheat Bread",
        "category": "Bread",
        "packaging_type": FinishedProduct.PackagingType.BOX,
        "units_per_package": 1,
        "weight_value": Decimal("500"),
        "weight_unit": FinishedProduct.WeightUnit.G,
        "stock_pieces": 100,
        "stock_cartons": 10,
        "minimum_pieces": 20,
        "minimum_cartons": 2,
        "manufacturing_cost": Decimal("3.5"),
        "selling_price": Decimal("7.0"),
    }
    defaults.update(extra)
    return FinishedProduct.objects.create(brand=brand, code=code, **defaults)


def make_bom(product, lines=(), batch_quantity=Decimal("100"), status=BOM.Status.DRAFT, version="1.0", **extra):
    """``lines`` is a sequence of (material, quantity, wastage_percent)."""
    bom = BOM.objects.create(
        product=product,
        brand=product.brand,
        version=version,
        batch_quantity=batch_quantity,
        status=status,
        **extra,
    )
    for order, (material, quantity, wastage) in enumerate(lines):
        BOMMaterial.objects.create(
            bom=bom,
            material_id=material.id,
            quantity=quantity,
            unit=material.unit,
            wastage_percent=wastage,
            sort_order=order,
        )
    return bom


def production_window(days=1):
    start = timezone.now()
    return start, start + timedelta(days=days)
