"""
Django admin configuration for companies app.
"""
from django.contrib import admin
from .models import Company, CompanyUser, PlatformAdmin


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'is_active', 'is_frozen', 'created_at']
    list_filter = ['is_active', 'is_frozen']
    search_fields = ['name', 'slug']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(CompanyUser)
class CompanyUserAdmin(admin.ModelAdmin):
    list_display = ['user', 'company', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active']
    search_fields = ['user__username', 'user__email', 'company__name']
    raw_id_fields = ['user', 'company']


@admin.register(PlatformAdmin)
class PlatformAdminAdmin(admin.ModelAdmin):
    """Admin interface for the platform-admin capability."""
    list_display = ['user', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active']
    search_fields = ['user__username', 'user__email']
    raw_id_fields = ['user']
