from django.urls import path
from main.views import auth_views, brand_views, health_views, role_views, user_views


app_name = 'main'


urlpatterns = [
    path('health', health_views.health, name='health'),

    path('auth/login', auth_views.login, name='login'),
    path('auth/logout', auth_views.logout, name='logout'),
    path('auth/me', auth_views.me, name='me'),

    path('users', user_views.users, name='user-list'),
    path('users/<int:user_id>', user_views.user_detail, name='user-detail'),
    path('users/<int:user_id>/permissions/sync', user_views.sync_permissions, name='user-permissions-sync'),

    path('roles', role_views.list_roles, name='role-list'),
    path('roles/<str:role_code>', role_views.get_role, name='role-detail'),

    path('brands', brand_views.brands, name='brand-list'),
    path('brands/active', brand_views.active_brands, name='brand-active'),
    path('brands/<int:brand_id>', brand_views.brand_detail, name='brand-detail'),
]
