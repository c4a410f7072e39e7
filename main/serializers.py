from rest_framework import serializers

from main.models import Brand, User


class BrandSerializer(serializers.ModelSerializer):

    class Meta:
        model = Brand
        fields = [
            "name", "code", "description", "status", "logo",
            "contact_name", "contact_email", "contact_phone",
            "address", "metadata",
        ]

    def validate_code(self, value):
        value = value.strip().upper()
        queryset = Brand.objects.filter(code=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Brand code already exists")
        return value

    def validate_address(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Address must be an object")
        return value


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField()


class UserCreateSerializer(serializers.Serializer):
    username = serializers.CharField(min_length=3, max_length=30)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=8)
    role = serializers.ChoiceField(choices=User.RoleChoices.choices, default=User.RoleChoices.OPERATOR)
    status = serializers.ChoiceField(choices=User.UserStatus.choices, default=User.UserStatus.ACTIVE)
    first_name = serializers.CharField(max_length=50, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=50, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    department = serializers.CharField(max_length=100, required=False, allow_blank=True)
    position = serializers.CharField(max_length=100, required=False, allow_blank=True)


class UserUpdateSerializer(serializers.Serializer):
    username = serializers.CharField(min_length=3, max_length=30, required=False)
    email = serializers.EmailField(required=False)
    password = serializers.CharField(min_length=8, required=False)
    role = serializers.ChoiceField(choices=User.RoleChoices.choices, required=False)
    status = serializers.ChoiceField(choices=User.UserStatus.choices, required=False)
    first_name = serializers.CharField(max_length=50, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=50, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    department = serializers.CharField(max_length=100, required=False, allow_blank=True)
    position = serializers.CharField(max_length=100, required=False, allow_blank=True)
