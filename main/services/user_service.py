import logging
import re

from django.contrib.auth.hashers import make_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.paginator import Paginator
from django.core.validators import validate_email
from django.db import transaction
from django.db.models import Q

from main.models import User
from main.services.role_service import RoleService
from stock.services.base_service import (
    BusinessRuleError, NotFoundError, ValidationError, success_response,
)

logger = logging.getLogger(__name__)

PASSWORD_PATTERN = re.compile(r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z0-9]).{8,}$')
USERNAME_PATTERN = re.compile(r'^[A-Za-z0-9_.-]{3,30}$')


class UserService:

    PROFILE_FIELDS = ['first_name', 'last_name', 'phone', 'department', 'position']

    @staticmethod
    def _serialize_user(user, include_permissions=True):
        data = {
            'id': user.id,
            'uuid': str(user.uuid),
            'username': user.username,
            'email': user.email,
            'role': user.role,
            'status': user.status,
            'profile': {field: getattr(user, field) for field in UserService.PROFILE_FIELDS},
            'full_name': user.full_name,
            'last_login': user.last_login_at.isoformat() if user.last_login_at else None,
            'created_at': user.created_at.isoformat() if user.created_at else None,
        }
        if include_permissions:
            data['permissions'] = user.permissions
            data['permissions_version'] = user.permissions_version
            data['permissions_current'] = user.permissions_version == RoleService.POLICY_VERSION
        return data

    @staticmethod
    def _get_or_404(user_id):
        user = User.objects.filter(id=user_id).first()
        if not user:
            raise NotFoundError('User', user_id)
        return user

    @staticmethod
    def _validate_password(password):
        if not password or not PASSWORD_PATTERN.match(password):
            raise ValidationError(
                'Password must be at least 8 characters and contain an uppercase letter, '
                'a lowercase letter, a number and a special character',
                'password',
            )

    @staticmethod
    def _validate_identity(username, email, exclude_id=None):
        if not username or not USERNAME_PATTERN.match(username):
            raise ValidationError('Username must be 3-30 letters, numbers, dots, dashes or underscores', 'username')

        try:
            validate_email(email or '')
        except DjangoValidationError:
            raise ValidationError('Please provide a valid email', 'email')

        clash = User.objects.filter(Q(username__iexact=username) | Q(email__iexact=email))
        if exclude_id:
            clash = clash.exclude(id=exclude_id)
        if clash.exists():
            raise BusinessRuleError('Username or email already registered', 'duplicate_user')

    @staticmethod
    def get_all_users(page=1, per_page=20, search=None, role=None, status=None):
        queryset = User.objects.all()

        if search:
            queryset = queryset.filter(
                Q(username__icontains=search) |
                Q(email__icontains=search) |
                Q(first_name__icontains=search) |
                Q(last_name__icontains=search)
            )

        if role:
            queryset = queryset.filter(role=role)

        if status:
            queryset = queryset.filter(status=status)

        paginator = Paginator(queryset.order_by('username'), max(1, min(per_page, 100)))
        page_obj = paginator.get_page(page)

        return success_response({
            'users': [UserService._serialize_user(u, include_permissions=False) for u in page_obj],
            'pagination': {
                'page': page_obj.number,
                'per_page': paginator.per_page,
                'total_items': paginator.count,
                'total_pages': paginator.num_pages,
                'has_next': page_obj.has_next(),
                'has_prev': page_obj.has_previous(),
            },
        })

    @staticmethod
    def get_user(user_id):
        return success_response({'user': UserService._serialize_user(UserService._get_or_404(user_id))})

    @staticmethod
    @transaction.atomic
    def create_user(username, email, password, role=User.RoleChoices.OPERATOR,
                    status=User.UserStatus.ACTIVE, **profile):
        email = (email or '').strip().lower()
        username = (username or '').strip()

        UserService._validate_identity(username, email)
        UserService._validate_password(password)

        if not RoleService.is_valid_role(role):
            raise ValidationError(f'Invalid role. Valid: {list(RoleService.ROLES)}', 'role')

        if status not in User.UserStatus.values:
            raise ValidationError(f'Invalid status. Valid: {User.UserStatus.values}', 'status')

        user = User(
            username=username,
            email=email,
            password=make_password(password),
            role=role,
            status=status,
            **{k: v for k, v in profile.items() if k in UserService.PROFILE_FIELDS},
        )
        RoleService.apply_defaults(user)
        user.save()

        logger.info("User %s created with role %s", user.username, user.role)

        return success_response({'user': UserService._serialize_user(user)}, 'User created successfully')

    @staticmethod
    @transaction.atomic
    def update_user(user_id, **data):
        user = UserService._get_or_404(user_id)

        username = data.get('username', user.username)
        email = (data.get('email') or user.email).strip().lower()
        if username != user.username or email != user.email:
            UserService._validate_identity(username, email, exclude_id=user.id)
            user.username = username
            user.email = email

        if data.get('password'):
            UserService._validate_password(data['password'])
            user.password = make_password(data['password'])

        if 'status' in data:
            if data['status'] not in User.UserStatus.values:
                raise ValidationError(f'Invalid status. Valid: {User.UserStatus.values}', 'status')
            user.status = data['status']

        for field in UserService.PROFILE_FIELDS:
            if field in data:
                setattr(user, field, data[field] or '')

        role_changed = 'role' in data and data['role'] != user.role
        if role_changed:
            if not RoleService.is_valid_role(data['role']):
                raise ValidationError(f'Invalid role. Valid: {list(RoleService.ROLES)}', 'role')
            user.role = data['role']
            RoleService.apply_defaults(user)

        user.save()

        if role_changed:
            logger.info("User %s role changed to %s", user.username, user.role)

        return success_response({'user': UserService._serialize_user(user)}, 'User updated successfully')

    @staticmethod
    @transaction.atomic
    def delete_user(user_id, acting_user=None):
        user = UserService._get_or_404(user_id)

        if acting_user is not None and acting_user.id == user.id:
            raise BusinessRuleError('You cannot delete your own account', 'self_delete')

        user.delete()
        logger.info("User %s deleted", user.username)

        return success_response(message='User deleted successfully')

    @staticmethod
    @transaction.atomic
    def sync_permissions(user_id):
        user = RoleService.sync_permissions(UserService._get_or_404(user_id))
        return success_response({'user': UserService._serialize_user(user)}, 'Permissions synced with role policy')
