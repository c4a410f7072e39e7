import uuid as uuid_lib

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class UnitChoices(models.TextChoices):
    KG = "kg", "Kilogram"
    G = "g", "Gram"
    L = "l", "Litre"
    ML = "ml", "Millilitre"
    PIECES = "pieces", "Pieces"
    BOXES = "boxes", "Boxes"
    ROLLS = "rolls", "Rolls"
    METERS = "meters", "Meters"


class RawMaterial(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        DISCONTINUED = "discontinued", "Discontinued"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=200)
    brand = models.ForeignKey(
        "main.Brand", on_delete=models.PROTECT, related_name="raw_materials"
    )
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=100)
    unit = models.CharField(max_length=10, choices=UnitChoices.choices)

    stock_current = models.DecimalField(
        max_digits=15, decimal_places=4, default=0, validators=[MinValueValidator(0)]
    )
    stock_minimum = models.DecimalField(
        max_digits=15, decimal_places=4, default=0, validators=[MinValueValidator(0)]
    )
    stock_maximum = models.DecimalField(
        max_digits=15, decimal_places=4, default=0, validators=[MinValueValidator(0)]
    )

    cost_per_unit = models.DecimalField(
        max_digits=15, decimal_places=4, validators=[MinValueValidator(0)]
    )
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    price_updated_at = models.DateTimeField(null=True, blank=True)

    supplier_name = models.CharField(max_length=200, blank=True, default="")
    supplier_email = models.EmailField(blank=True, default="")
    supplier_phone = models.CharField(max_length=30, blank=True, default="")
    supplier_lead_time = models.PositiveIntegerField(default=0, help_text="Days")

    status = models.CharField(max_length=15, choices=Status.choices, default=Status.ACTIVE)
    location = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        indexes = [
            models.Index(fields=["brand", "status"]),
            models.Index(fields=["category"]),
        ]

    @property
    def total_value(self):
        return self.stock_current * self.cost_per_unit

    @property
    def needs_reorder(self):
        return self.stock_current <= self.stock_minimum

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        self.currency = (self.currency or "").upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.code} {self.name}"


class FinishedProduct(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        DISCONTINUED = "discontinued", "Discontinued"

    class PackagingType(models.TextChoices):
        CARTON = "carton", "Carton"
        BOX = "box", "Box"
        BAG = "bag", "Bag"
        BOTTLE = "bottle", "Bottle"
        OTHER = "other", "Other"

    class WeightUnit(models.TextChoices):
        G = "g", "Gram"
        KG = "kg", "Kilogram"
        ML = "ml", "Millilitre"
        L = "l", "Litre"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=200)
    brand = models.ForeignKey(
        "main.Brand", on_delete=models.PROTECT, related_name="finished_products"
    )
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=100)

    packaging_type = models.CharField(max_length=10, choices=PackagingType.choices)
    units_per_package = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    weight_value = models.DecimalField(
        max_digits=15, decimal_places=4, validators=[MinValueValidator(0)]
    )
    weight_unit = models.CharField(max_length=3, choices=WeightUnit.choices)

    stock_pieces = models.PositiveIntegerField(default=0)
    stock_cartons = models.PositiveIntegerField(default=0)
    minimum_pieces = models.PositiveIntegerField(default=0)
    minimum_cartons = models.PositiveIntegerField(default=0)

    manufacturing_cost = models.DecimalField(
        max_digits=15, decimal_places=4, validators=[MinValueValidator(0)]
    )
    selling_price = models.DecimalField(
        max_digits=15, decimal_places=4, validators=[MinValueValidator(0)]
    )
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)

    status = models.CharField(max_length=15, choices=Status.choices, default=Status.ACTIVE)
    specifications = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        unique_together = [("code", "brand")]

    @property
    def total_pieces(self):
        return self.stock_pieces + self.stock_cartons * self.units_per_package

    @property
    def minimum_total_pieces(self):
        return self.minimum_pieces + self.minimum_cartons * self.units_per_package

    @property
    def total_value(self):
        return self.total_pieces * self.selling_price

    @property
    def needs_production(self):
        return self.total_pieces <= self.minimum_total_pieces

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        self.currency = (self.currency or "").upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.code} {self.name}"


class BOM(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        ACTIVE = "active", "Active"
        ARCHIVED = "archived", "Archived"

    class BatchUnit(models.TextChoices):
        PIECES = "pieces", "Pieces"
        CARTONS = "cartons", "Cartons"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    product = models.ForeignKey(
        FinishedProduct, on_delete=models.PROTECT, related_name="boms"
    )
    brand = models.ForeignKey(
        "main.Brand", on_delete=models.PROTECT, related_name="boms"
    )
    version = models.CharField(max_length=20, default="1.0")
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.DRAFT)

    batch_quantity = models.DecimalField(
        max_digits=15, decimal_places=4, validators=[MinValueValidator(1)]
    )
    batch_unit = models.CharField(max_length=10, choices=BatchUnit.choices, default=BatchUnit.PIECES)

    # [{"step": 1, "description": "...", "duration": 30, "equipment": "...", "parameters": {}}]
    process_steps = models.JSONField(default=list, blank=True)
    # [{"stage": "review", "approver": {"name": ..., "role": ...}, "comments": ..., "timestamp": ...}]
    approvals = models.JSONField(default=list, blank=True)

    material_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    labor_cost = models.DecimalField(
        max_digits=15, decimal_places=4, default=0, validators=[MinValueValidator(0)]
    )
    overhead_cost = models.DecimalField(
        max_digits=15, decimal_places=4, default=0, validators=[MinValueValidator(0)]
    )
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)

    parent_bom = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="versions",
    )
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        unique_together = [("product", "brand", "version")]
        verbose_name = "BOM"
        verbose_name_plural = "BOMs"

    def __str__(self):
        return f"BOM {self.product.code} v{self.version}"


class BOMMaterial(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    bom = models.ForeignKey(BOM, on_delete=models.CASCADE, related_name="materials")
    # No database constraint: a deleted raw material must surface as a shortage, not vanish.
    material = models.ForeignKey(
        RawMaterial,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="bom_lines",
    )
    quantity = models.DecimalField(
        max_digits=15, decimal_places=4, validators=[MinValueValidator(0)]
    )
    unit = models.CharField(max_length=10, choices=UnitChoices.choices)
    wastage_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    notes = models.TextField(blank=True, default="")
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "id"]

    def __str__(self):
        return f"{self.material_id} × {self.quantity}"


class Production(models.Model):
    class Status(models.TextChoices):
        PLANNED = "planned", "Planned"
        IN_PROGRESS = "in-progress", "In Progress"
        COMPLETED = "completed", "Completed"
        QUALITY_CHECK = "quality-check", "Quality Check"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    batch_number = models.CharField(max_length=20, unique=True)
    brand = models.ForeignKey(
        "main.Brand", on_delete=models.PROTECT, related_name="productions"
    )
    product = models.ForeignKey(
        FinishedProduct, on_delete=models.PROTECT, related_name="productions"
    )
    bom = models.ForeignKey(BOM, on_delete=models.PROTECT, related_name="productions")

    status = models.CharField(
        max_length=15, choices=Status.choices, default=Status.PLANNED, db_index=True
    )

    quantity_planned = models.DecimalField(
        max_digits=15, decimal_places=4, validators=[MinValueValidator(1)]
    )
    quantity_produced = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    quantity_rejected = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    quantity_unit = models.CharField(max_length=10, default="pieces")

    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    actual_start = models.DateTimeField(null=True, blank=True)
    actual_end = models.DateTimeField(null=True, blank=True)

    materials_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    labor_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    overhead_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    # [{"description": "...", "amount": "12.50"}]
    additional_costs = models.JSONField(default=list, blank=True)
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)

    machine_name = models.CharField(max_length=100, blank=True, default="")
    machine_code = models.CharField(max_length=50, blank=True, default="")
    machine_hours = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    # [{"content": "...", "author": "...", "timestamp": "..."}]
    notes = models.JSONField(default=list, blank=True)

    posted_to_inventory_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["brand", "status"]),
            models.Index(fields=["start_date"]),
        ]

    def __str__(self):
        return f"Batch {self.batch_number}"


class ProductionMaterial(models.Model):
    production = models.ForeignKey(
        Production, on_delete=models.CASCADE, related_name="materials"
    )
    material = models.ForeignKey(
        RawMaterial, on_delete=models.PROTECT, related_name="production_usages"
    )
    quantity_used = models.DecimalField(
        max_digits=15, decimal_places=4, validators=[MinValueValidator(0)]
    )
    unit = models.CharField(max_length=10, choices=UnitChoices.choices)
    wastage = models.DecimalField(
        max_digits=15, decimal_places=4, default=0, validators=[MinValueValidator(0)]
    )
    cost = models.DecimalField(
        max_digits=15, decimal_places=4, default=0, validators=[MinValueValidator(0)]
    )

    class Meta:
        ordering = ["id"]


class ProductionStaff(models.Model):
    production = models.ForeignKey(
        Production, on_delete=models.CASCADE, related_name="staff"
    )
    role = models.CharField(max_length=50)
    name = models.CharField(max_length=100)
    hours = models.DecimalField(
        max_digits=8, decimal_places=2, validators=[MinValueValidator(0)]
    )

    class Meta:
        ordering = ["id"]
        verbose_name_plural = "production staff"


class QualityCheck(models.Model):
    class Status(models.TextChoices):
        PASSED = "passed", "Passed"
        FAILED = "failed", "Failed"
        WARNING = "warning", "Warning"

    production = models.ForeignKey(
        Production, on_delete=models.CASCADE, related_name="quality_checks"
    )
    parameter = models.CharField(max_length=100)
    expected = models.CharField(max_length=100, blank=True, default="")
    actual = models.CharField(max_length=100, blank=True, default="")
    status = models.CharField(max_length=10, choices=Status.choices)
    notes = models.TextField(blank=True, default="")
    checked_by = models.CharField(max_length=100, blank=True, default="")
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["timestamp", "id"]


class ProductionIssue(models.Model):
    class IssueType(models.TextChoices):
        MATERIAL = "material", "Material"
        QUALITY = "quality", "Quality"
        MACHINE = "machine", "Machine"
        STAFF = "staff", "Staff"
        OTHER = "other", "Other"

    class Severity(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"
        CRITICAL = "critical", "Critical"

    class Status(models.TextChoices):
        OPEN = "open", "Open"
        IN_PROGRESS = "in-progress", "In Progress"
        RESOLVED = "resolved", "Resolved"

    production = models.ForeignKey(
        Production, on_delete=models.CASCADE, related_name="issues"
    )
    type = models.CharField(max_length=10, choices=IssueType.choices)
    description = models.TextField()
    severity = models.CharField(max_length=10, choices=Severity.choices)
    status = models.CharField(max_length=15, choices=Status.choices, default=Status.OPEN)
    reported_by = models.CharField(max_length=100, blank=True, default="")
    resolution_action = models.TextField(blank=True, default="")
    resolved_by = models.CharField(max_length=100, blank=True, default="")
    resolved_at = models.DateTimeField(null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-timestamp", "-id"]


class Inventory(models.Model):
    """
    Stock ledger head for one item of one brand.
    Balance and valuation are only changed by appending InventoryTransaction rows.
    """

    class ItemType(models.TextChoices):
        RAW_MATERIAL = "raw-material", "Raw Material"
        FINISHED_PRODUCT = "finished-product", "Finished Product"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    item_type = models.CharField(max_length=20, choices=ItemType.choices)
    item_id = models.PositiveBigIntegerField()
    brand = models.ForeignKey(
        "main.Brand", on_delete=models.PROTECT, related_name="inventories"
    )

    current_stock = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    unit = models.CharField(max_length=10)

    # [{"batch_number": "...", "quantity": "10", "manufacturing_date": ..., "expiry_date": ..., "location": ...}]
    batches = models.JSONField(default=list, blank=True)

    average_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    total_value = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    value_updated_at = models.DateTimeField(null=True, blank=True)

    limit_minimum = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    limit_maximum = models.DecimalField(max_digits=15, decimal_places=4, null=True, blank=True)
    reorder_point = models.DecimalField(max_digits=15, decimal_places=4, default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["item_type", "item_id"]
        verbose_name_plural = "inventories"
        unique_together = [("item_type", "item_id", "brand")]
        indexes = [
            models.Index(fields=["brand"]),
            models.Index(fields=["current_stock"]),
        ]

    def __str__(self):
        return f"{self.item_type}#{self.item_id}: {self.current_stock} {self.unit}"


class InventoryTransaction(models.Model):
    class TransactionType(models.TextChoices):
        IN = "in", "In"
        OUT = "out", "Out"
        ADJUSTMENT = "adjustment", "Adjustment"
        PRODUCTION_USE = "production-use", "Production Use"
        PRODUCTION_OUTPUT = "production-output", "Production Output"

    class ReferenceType(models.TextChoices):
        PRODUCTION = "production", "Production"
        PURCHASE = "purchase", "Purchase"
        SALE = "sale", "Sale"
        RETURN = "return", "Return"
        ADJUSTMENT = "adjustment", "Adjustment"
        TRANSFER = "transfer", "Transfer"

    class QualityStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PASSED = "passed", "Passed"
        FAILED = "failed", "Failed"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    inventory = models.ForeignKey(
        Inventory, on_delete=models.CASCADE, related_name="transactions"
    )
    type = models.CharField(max_length=20, choices=TransactionType.choices, db_index=True)
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    unit = models.CharField(max_length=10)
    quantity_before = models.DecimalField(max_digits=15, decimal_places=4)
    quantity_after = models.DecimalField(max_digits=15, decimal_places=4)

    reference_type = models.CharField(max_length=15, choices=ReferenceType.choices)
    reference_number = models.CharField(max_length=50)

    batch_number = models.CharField(max_length=50, blank=True, default="")
    batch_expiry_date = models.DateTimeField(null=True, blank=True)
    batch_manufacturing_date = models.DateTimeField(null=True, blank=True)

    location_from = models.CharField(max_length=100, blank=True, default="")
    location_to = models.CharField(max_length=100, blank=True, default="")

    cost_per_unit = models.DecimalField(max_digits=15, decimal_places=4, null=True, blank=True)
    cost_total = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)

    quality_status = models.CharField(
        max_length=10, choices=QualityStatus.choices, blank=True, default=""
    )
    quality_checked_by = models.CharField(max_length=100, blank=True, default="")
    quality_date = models.DateTimeField(null=True, blank=True)
    quality_notes = models.TextField(blank=True, default="")

    notes = models.TextField(blank=True, default="")
    performed_by = models.ForeignKey(
        "main.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_transactions",
    )
    approved_by = models.ForeignKey(
        "main.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_inventory_transactions",
    )
    production = models.ForeignKey(
        Production,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_transactions",
    )
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["timestamp", "id"]
        indexes = [
            models.Index(fields=["inventory", "timestamp"]),
            models.Index(fields=["reference_type", "reference_number"]),
        ]

    def __str__(self):
        return f"{self.get_type_display()} {self.quantity} {self.unit}"
