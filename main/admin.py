from django import forms
from django.contrib import admin
from django.contrib.auth.hashers import make_password
from django.urls import reverse
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin
from unfold.contrib.filters.admin import RangeDateTimeFilter
from unfold.decorators import display

from .models import Brand, User, Session
from .services.role_service import RoleService


class UserAdminForm(forms.ModelForm):
    """User form that hashes the password and snapshots role permissions."""
    password = forms.CharField(
        label=_("Password"),
        widget=forms.PasswordInput(attrs={'placeholder': 'Enter password'}),
        required=False,
    )

    class Meta:
        model = User
        exclude = ['permissions', 'permissions_version']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.instance and self.instance.pk:
            self.fields['password'].help_text = _(
                "Leave blank to keep the current password."
            )
        else:
            self.fields['password'].required = True

    def clean_password(self):
        password = self.cleaned_data.get('password')
        if self.instance.pk and not password:
            return None
        if password and len(password) < 8:
            raise forms.ValidationError(_("Password must be at least 8 characters long."))
        return password

    def save(self, commit=True):
        user = super().save(commit=False)

        password = self.cleaned_data.get('password')
        if password:
            user.password = make_password(password)
        elif user.pk:
            user.password = User.objects.filter(pk=user.pk).values_list('password', flat=True).first()

        if not user.pk or 'role' in self.changed_data:
            RoleService.apply_defaults(user)

        if commit:
            user.save()
        return user


@admin.register(Brand)
class BrandAdmin(ModelAdmin):
    list_display = ['id', 'name', 'code', 'status_badge', 'material_count', 'product_count', 'created_at']
    list_filter = [
        'status',
        ('created_at', RangeDateTimeFilter),
    ]
    search_fields = ['name', 'code', 'contact_name', 'contact_email']
    list_filter_submit = True
    readonly_fields = ['uuid', 'created_at', 'updated_at']

    fieldsets = (
        (_('Brand'), {
            'fields': ('name', 'code', 'description', 'status', 'logo'),
        }),
        (_('Contact'), {
            'fields': ('contact_name', 'contact_email', 'contact_phone', 'address'),
            'classes': ['tab'],
        }),
        (_('Metadata'), {
            'fields': ('metadata', 'uuid', 'created_at', 'updated_at'),
            'classes': ['tab'],
        }),
    )

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        if obj.status == Brand.Status.ACTIVE:
            return 'success', obj.get_status_display()
        return 'warning', obj.get_status_display()

    @display(description=_("Raw Materials"))
    def material_count(self, obj):
        return obj.raw_materials.count()

    @display(description=_("Products"))
    def product_count(self, obj):
        return obj.finished_products.count()


@admin.register(User)
class UserAdmin(ModelAdmin):
    form = UserAdminForm
    list_display = ['id', 'username', 'full_name', 'email', 'role_badge', 'status_badge', 'last_login_at']
    list_filter = [
        'role',
        'status',
        ('last_login_at', RangeDateTimeFilter),
    ]
    search_fields = ['username', 'first_name', 'last_name', 'email']
    list_filter_submit = True
    list_fullwidth = True
    readonly_fields = ['last_login_at', 'last_login_ip']

    fieldsets = (
        (_('Account'), {
            'fields': ('username', 'email', 'first_name', 'last_name', 'phone'),
            'classes': ['tab'],
        }),
        (_('Organization'), {
            'fields': ('department', 'position'),
            'classes': ['tab'],
        }),
        (_('Access & Security'), {
            'fields': ('role', 'status', 'password'),
            'classes': ['tab'],
            'description': _('Changing the role resets the user to that role\'s default permissions.'),
        }),
        (_('Activity Tracking'), {
            'fields': ('last_login_at', 'last_login_ip'),
            'classes': ['tab'],
        }),
    )

    @display(description=_("Name"), ordering='first_name')
    def full_name(self, obj):
        return obj.full_name

    @display(description=_("Role"), label=True)
    def role_badge(self, obj):
        colors = {
            'admin': 'danger',
            'manager': 'warning',
            'supervisor': 'info',
            'operator': 'success',
        }
        return colors.get(obj.role, 'info'), obj.get_role_display()

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        if obj.status == User.UserStatus.ACTIVE:
            return 'success', obj.get_status_display()
        return 'danger', obj.get_status_display()


@admin.register(Session)
class SessionAdmin(ModelAdmin):
    list_display = ['id', 'user_link', 'ip_address', 'user_agent', 'last_activity']
    list_filter = [
        ('last_activity', RangeDateTimeFilter),
    ]
    search_fields = ['ip_address', 'user_agent', 'user__username']
    list_filter_submit = True
    readonly_fields = ['payload', 'last_activity']

    @display(description=_("User"))
    def user_link(self, obj):
        url = reverse('admin:main_user_change', args=[obj.user_id])
        return format_html('<a href="{}">{}</a>', url, obj.user.username)
