"""
Request payload validation for the stock endpoints.

Serializers only check shape, ranges and references; business rules live in
the services.
"""

from decimal import Decimal

from django.conf import settings
from rest_framework import serializers

from main.models import Brand
from stock.formulas import TRANSACTION_TYPES
from stock.models import (
    BOM, FinishedProduct, Inventory, InventoryTransaction, ProductionIssue,
    QualityCheck, RawMaterial, UnitChoices,
)


class RawMaterialSerializer(serializers.ModelSerializer):
    brand = serializers.PrimaryKeyRelatedField(queryset=Brand.objects.all())

    class Meta:
        model = RawMaterial
        fields = [
            "code", "name", "brand", "description", "category", "unit",
            "stock_current", "stock_minimum", "stock_maximum",
            "cost_per_unit", "currency",
            "supplier_name", "supplier_email", "supplier_phone", "supplier_lead_time",
            "status", "location", "notes", "metadata",
        ]

    def validate_code(self, value):
        value = value.strip().upper()
        queryset = RawMaterial.objects.filter(code=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Raw material code already exists")
        return value


class FinishedProductSerializer(serializers.ModelSerializer):
    brand = serializers.PrimaryKeyRelatedField(queryset=Brand.objects.all())

    class Meta:
        model = FinishedProduct
        fields = [
            "code", "name", "brand", "description", "category",
            "packaging_type", "units_per_package", "weight_value", "weight_unit",
            "stock_pieces", "stock_cartons", "minimum_pieces", "minimum_cartons",
            "manufacturing_cost", "selling_price", "currency",
            "status", "specifications", "metadata",
        ]

    def validate_code(self, value):
        return value.strip().upper()


class BOMLineSerializer(serializers.Serializer):
    material = serializers.IntegerField(min_value=1)
    quantity = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"))
    unit = serializers.ChoiceField(choices=UnitChoices.choices)
    wastage_percent = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100"), default=Decimal("0")
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ApprovalSerializer(serializers.Serializer):
    stage = serializers.ChoiceField(choices=["draft", "review", "approved"])
    approver_name = serializers.CharField(max_length=100)
    approver_role = serializers.CharField(max_length=50)
    comments = serializers.CharField(required=False, allow_blank=True, default="")


class BOMSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=FinishedProduct.objects.all())
    brand = serializers.PrimaryKeyRelatedField(queryset=Brand.objects.all())
    version = serializers.CharField(max_length=20, default="1.0")
    batch_quantity = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("1"))
    batch_unit = serializers.ChoiceField(choices=BOM.BatchUnit.choices, default=BOM.BatchUnit.PIECES)
    materials = BOMLineSerializer(many=True, required=False, default=list)
    process_steps = serializers.ListField(child=serializers.DictField(), required=False, default=list)
    labor_cost = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), default=Decimal("0"))
    overhead_cost = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), default=Decimal("0"))
    currency = serializers.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    metadata = serializers.DictField(required=False, default=dict)

    def validate(self, attrs):
        product = attrs.get("product")
        brand = attrs.get("brand")
        if product is not None and brand is not None and product.brand_id != brand.id:
            raise serializers.ValidationError({"product": "Product does not belong to this brand"})
        return attrs


class BOMUpdateSerializer(serializers.Serializer):
    batch_quantity = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("1"), required=False)
    batch_unit = serializers.ChoiceField(choices=BOM.BatchUnit.choices, required=False)
    materials = BOMLineSerializer(many=True, required=False)
    process_steps = serializers.ListField(child=serializers.DictField(), required=False)
    labor_cost = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False)
    overhead_cost = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False)
    currency = serializers.CharField(max_length=3, required=False)
    metadata = serializers.DictField(required=False)


class NewVersionSerializer(serializers.Serializer):
    version = serializers.CharField(max_length=20)


class AdditionalCostSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=200)
    amount = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"))


class ProductionSerializer(serializers.Serializer):
    bom = serializers.PrimaryKeyRelatedField(queryset=BOM.objects.all())
    quantity_planned = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("1"))
    quantity_unit = serializers.CharField(max_length=10, default="pieces")
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()
    overhead_cost = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), default=Decimal("0"))
    additional_costs = AdditionalCostSerializer(many=True, required=False, default=list)
    machine_name = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    machine_code = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    machine_hours = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"), default=Decimal("0"))

    def validate(self, attrs):
        if attrs["end_date"] <= attrs["start_date"]:
            raise serializers.ValidationError({"end_date": "End date must be after start date"})
        return attrs


class ProductionUpdateSerializer(serializers.Serializer):
    quantity_planned = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("1"), required=False)
    quantity_produced = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False)
    quantity_rejected = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False)
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)
    overhead_cost = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False)
    additional_costs = AdditionalCostSerializer(many=True, required=False)
    machine_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    machine_code = serializers.CharField(max_length=50, required=False, allow_blank=True)
    machine_hours = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"), required=False)


class StatusSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=20)


class ConsumedMaterialSerializer(serializers.Serializer):
    material = serializers.PrimaryKeyRelatedField(queryset=RawMaterial.objects.all())
    quantity_used = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"))
    unit = serializers.ChoiceField(choices=UnitChoices.choices)
    wastage = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), default=Decimal("0"))
    cost = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False)


class StaffSerializer(serializers.Serializer):
    role = serializers.CharField(max_length=50)
    name = serializers.CharField(max_length=100)
    hours = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=Decimal("0"))


class QualityCheckSerializer(serializers.Serializer):
    parameter = serializers.CharField(max_length=100)
    expected = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    actual = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    status = serializers.ChoiceField(choices=QualityCheck.Status.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class IssueSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=ProductionIssue.IssueType.choices)
    description = serializers.CharField()
    severity = serializers.ChoiceField(choices=ProductionIssue.Severity.choices)


class ResolveIssueSerializer(serializers.Serializer):
    action = serializers.CharField()


class NoteSerializer(serializers.Serializer):
    content = serializers.CharField()


class InventoryCreateSerializer(serializers.Serializer):
    item_type = serializers.ChoiceField(choices=Inventory.ItemType.choices)
    item_id = serializers.IntegerField(min_value=1)
    brand = serializers.PrimaryKeyRelatedField(queryset=Brand.objects.all())
    limit_minimum = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), default=Decimal("0"))
    limit_maximum = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False, allow_null=True)
    reorder_point = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), default=Decimal("0"))


class InventoryLimitsSerializer(serializers.Serializer):
    limit_minimum = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False)
    limit_maximum = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False, allow_null=True)
    reorder_point = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False)


class TransactionSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=list(TRANSACTION_TYPES))
    quantity = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0.0001"))
    unit = serializers.CharField(max_length=10, required=False)
    reference_type = serializers.ChoiceField(choices=InventoryTransaction.ReferenceType.choices)
    reference_number = serializers.CharField(max_length=50)
    batch_number = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    batch_expiry_date = serializers.DateTimeField(required=False, allow_null=True)
    batch_manufacturing_date = serializers.DateTimeField(required=False, allow_null=True)
    location_from = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    location_to = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    cost_per_unit = serializers.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"), required=False, allow_null=True)
    cost_total = serializers.DecimalField(max_digits=18, decimal_places=4, min_value=Decimal("0"), required=False, allow_null=True)
    quality_status = serializers.ChoiceField(choices=InventoryTransaction.QualityStatus.choices, required=False)
    quality_checked_by = serializers.CharField(max_length=100, required=False, allow_blank=True)
    quality_notes = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ItemTransactionSerializer(TransactionSerializer):
    item_type = serializers.ChoiceField(choices=Inventory.ItemType.choices)
    item_id = serializers.IntegerField(min_value=1)
    brand = serializers.PrimaryKeyRelatedField(queryset=Brand.objects.all())
