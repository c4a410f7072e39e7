import copy
import logging

from django.db.models import Count

from main.models import User
from stock.services.base_service import NotFoundError, success_response

logger = logging.getLogger(__name__)

ALL_ACTIONS = ['view', 'create', 'edit', 'delete', 'approve']

MODULES = [
    'brands', 'raw-materials', 'finished-products', 'bom', 'production',
    'inventory', 'reports', 'users', 'settings',
]


def _grant(module, actions):
    return {'module': module, 'actions': list(actions)}


class RoleService:
    # Bump whenever a role's default grants change; users keep the version they were synced with.
    POLICY_VERSION = 1

    ROLES = {
        'admin': {
            'name': 'Admin',
            'description': 'Full system access',
            'level': 100,
            'permissions': [
                _grant('brands', ALL_ACTIONS),
                _grant('raw-materials', ALL_ACTIONS),
                _grant('finished-products', ALL_ACTIONS),
                _grant('bom', ALL_ACTIONS),
                _grant('production', ALL_ACTIONS),
                _grant('inventory', ALL_ACTIONS),
                _grant('reports', ['view', 'create', 'edit', 'delete']),
                _grant('users', ['view', 'create', 'edit', 'delete']),
                _grant('settings', ['view', 'edit']),
            ],
        },
        'manager': {
            'name': 'Manager',
            'description': 'Runs catalog, BOMs, production and inventory; approves changes',
            'level': 80,
            'permissions': [
                _grant('brands', ['view', 'create', 'edit', 'approve']),
                _grant('raw-materials', ['view', 'create', 'edit', 'approve']),
                _grant('finished-products', ['view', 'create', 'edit', 'approve']),
                _grant('bom', ['view', 'create', 'edit', 'approve']),
                _grant('production', ['view', 'create', 'edit', 'approve']),
                _grant('inventory', ['view', 'create', 'edit', 'approve']),
                _grant('reports', ['view', 'create']),
            ],
        },
        'supervisor': {
            'name': 'Supervisor',
            'description': 'Supervises production floor and stock movements',
            'level': 60,
            'permissions': [
                _grant('raw-materials', ['view', 'create', 'edit']),
                _grant('finished-products', ['view', 'edit']),
                _grant('bom', ['view', 'edit']),
                _grant('production', ['view', 'create', 'edit']),
                _grant('inventory', ['view', 'create', 'edit']),
                _grant('reports', ['view']),
            ],
        },
        'operator': {
            'name': 'Operator',
            'description': 'Records production runs',
            'level': 40,
            'permissions': [
                _grant('raw-materials', ['view']),
                _grant('finished-products', ['view']),
                _grant('bom', ['view']),
                _grant('production', ['view', 'create']),
                _grant('inventory', ['view']),
            ],
        },
        'viewer': {
            'name': 'Viewer',
            'description': 'Read-only access',
            'level': 10,
            'permissions': [
                _grant('raw-materials', ['view']),
                _grant('finished-products', ['view']),
                _grant('bom', ['view']),
                _grant('production', ['view']),
                _grant('inventory', ['view']),
                _grant('reports', ['view']),
            ],
        },
    }

    @staticmethod
    def is_valid_role(role_code):
        return role_code in RoleService.ROLES

    @staticmethod
    def default_permissions(role_code):
        if role_code not in RoleService.ROLES:
            raise NotFoundError('Role', role_code)
        return copy.deepcopy(RoleService.ROLES[role_code]['permissions'])

    @staticmethod
    def has_permission(user, module, action):
        if user.role == User.RoleChoices.ADMIN:
            return True

        for grant in user.permissions or []:
            if grant.get('module') == module:
                return action in grant.get('actions', [])
        return False

    @staticmethod
    def apply_defaults(user):
        """Snapshot the current policy onto ``user`` (unsaved)."""
        user.permissions = RoleService.default_permissions(user.role)
        user.permissions_version = RoleService.POLICY_VERSION
        return user

    @staticmethod
    def sync_permissions(user):
        previous = user.permissions_version
        RoleService.apply_defaults(user)
        user.save(update_fields=['permissions', 'permissions_version', 'updated_at'])

        logger.info(
            "Permissions for %s re-synced to %s policy v%s (was v%s)",
            user.username, user.role, user.permissions_version, previous,
        )
        return user

    @staticmethod
    def get_all_roles():
        counts = {
            row['role']: row['count']
            for row in User.objects.order_by().values('role').annotate(count=Count('id'))
        }

        roles = []
        for code, data in RoleService.ROLES.items():
            roles.append({
                'code': code,
                'name': data['name'],
                'description': data['description'],
                'level': data['level'],
                'permissions': data['permissions'],
                'user_count': counts.get(code, 0),
            })

        roles.sort(key=lambda x: x['level'], reverse=True)

        return success_response({
            'roles': roles,
            'modules': MODULES,
            'actions': ALL_ACTIONS,
            'policy_version': RoleService.POLICY_VERSION,
        })

    @staticmethod
    def get_role(role_code):
        if role_code not in RoleService.ROLES:
            raise NotFoundError('Role', role_code)

        data = RoleService.ROLES[role_code]
        return success_response({
            'role': {
                'code': role_code,
                'name': data['name'],
                'description': data['description'],
                'level': data['level'],
                'permissions': data['permissions'],
                'user_count': User.objects.filter(role=role_code).count(),
            }
        })
