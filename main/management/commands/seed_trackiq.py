"""
Seed a development database with demo users, brands and catalog data.

Usage:
    python manage.py seed_trackiq                 # create demo data (idempotent)
    python manage.py seed_trackiq --with-stock    # also open inventory ledgers
"""

from decimal import Decimal

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.db import transaction

from main.models import Brand, User
from main.services.role_service import RoleService
from stock.models import FinishedProduct, Inventory, InventoryTransaction, RawMaterial
from stock.services import InventoryService


USERS = [
    {
        'username': 'admin',
        'email': 'admin@trackiq.com',
        'password': 'Admin@123',
        'role': User.RoleChoices.ADMIN,
        'first_name': 'System',
        'last_name': 'Admin',
    },
    {
        'username': 'manager',
        'email': 'manager@trackiq.com',
        'password': 'Manager@123',
        'role': User.RoleChoices.MANAGER,
        'first_name': 'Plant',
        'last_name': 'Manager',
    },
]

BRANDS = [
    {'name': 'EcoFresh Foods', 'code': 'ECO-001', 'description': 'Organic bakery and pantry goods'},
    {'name': 'Pure Naturals', 'code': 'PURE-001', 'description': 'Natural oils and personal care'},
]

RAW_MATERIALS = [
    {
        'code': 'RM-001',
        'name': 'Organic Wheat Flour',
        'brand_code': 'ECO-001',
        'category': 'Flour',
        'unit': 'kg',
        'stock_current': Decimal('1000'),
        'stock_minimum': Decimal('100'),
        'stock_maximum': Decimal('5000'),
        'cost_per_unit': Decimal('2.5'),
    },
    {
        'code': 'RM-002',
        'name': 'Natural Coconut Oil',
        'brand_code': 'PURE-001',
        'category': 'Oils',
        'unit': 'l',
        'stock_current': Decimal('500'),
        'stock_minimum': Decimal('50'),
        'stock_maximum': Decimal('2000'),
        'cost_per_unit': Decimal('8.0'),
    },
]

FINISHED_PRODUCTS = [
    {
        'code': 'FP-001',
        'name': 'Organic Whole Wheat Bread',
        'brand_code': 'ECO-001',
        'category': 'Bread',
        'packaging_type': FinishedProduct.PackagingType.BOX,
        'units_per_package': 1,
        'weight_value': Decimal('500'),
        'weight_unit': FinishedProduct.WeightUnit.G,
        'stock_pieces': 100,
        'stock_cartons': 10,
        'minimum_pieces': 20,
        'minimum_cartons': 2,
        'manufacturing_cost': Decimal('3.5'),
        'selling_price': Decimal('7.0'),
    },
]


class Command(BaseCommand):
    help = 'Seed demo users, brands, raw materials and finished products'

    def add_arguments(self, parser):
        parser.add_argument(
            '--with-stock', action='store_true',
            help='Open inventory ledgers with the seeded stock as purchase receipts',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        self.seed_users()
        brands = self.seed_brands()
        materials = self.seed_raw_materials(brands)
        products = self.seed_finished_products(brands)

        if options['with_stock']:
            self.open_ledgers(materials, products)

        self.stdout.write(self.style.SUCCESS('TrackIQ demo data ready'))

    def seed_users(self):
        for row in USERS:
            data = dict(row)
            password = data.pop('password')
            user, created = User.objects.get_or_create(
                email=data['email'],
                defaults={**data, 'password': make_password(password)},
            )
            if created:
                RoleService.sync_permissions(user)
                self.stdout.write(f'  user {user.email} ({user.role})')

    def seed_brands(self):
        brands = {}
        for data in BRANDS:
            brand, created = Brand.objects.get_or_create(code=data['code'], defaults=data)
            brands[brand.code] = brand
            if created:
                self.stdout.write(f'  brand {brand.code} {brand.name}')
        return brands

    def seed_raw_materials(self, brands):
        materials = []
        for row in RAW_MATERIALS:
            data = dict(row)
            brand = brands[data.pop('brand_code')]
            material, created = RawMaterial.objects.get_or_create(
                code=data['code'], defaults={**data, 'brand': brand},
            )
            materials.append(material)
            if created:
                self.stdout.write(f'  raw material {material}')
        return materials

    def seed_finished_products(self, brands):
        products = []
        for row in FINISHED_PRODUCTS:
            data = dict(row)
            brand = brands[data.pop('brand_code')]
            product, created = FinishedProduct.objects.get_or_create(
                code=data['code'], brand=brand, defaults=data,
            )
            products.append(product)
            if created:
                self.stdout.write(f'  finished product {product}')
        return products

    def open_ledgers(self, materials, products):
        opening = [
            (Inventory.ItemType.RAW_MATERIAL, m, m.stock_current, m.cost_per_unit) for m in materials
        ] + [
            (Inventory.ItemType.FINISHED_PRODUCT, p, Decimal(p.total_pieces), p.manufacturing_cost) for p in products
        ]

        for item_type, item, quantity, cost in opening:
            ledger, created = InventoryService.get_or_create_ledger(item_type, item.id, item.brand_id)
            if not created or quantity <= 0:
                continue
            InventoryService.append_transaction(
                ledger,
                type=InventoryTransaction.TransactionType.IN,
                quantity=quantity,
                reference_type=InventoryTransaction.ReferenceType.PURCHASE,
                reference_number=f'OPENING-{item.code}',
                cost_per_unit=cost,
                notes='Opening balance',
            )
            self.stdout.write(f'  opened {item_type} ledger for {item.code}: {quantity}')
