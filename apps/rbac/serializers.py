"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- The permission catalog
- Permission decisions (effective permissions, checks)
- Role grant and user override administration
- Audit logs
- Impersonation state
"""
from rest_framework import serializers

from apps.rbac.catalog import PermissionCatalog
from apps.rbac.models import AuditLog


# ===== CATALOG & DECISION SERIALIZERS =====

class CatalogEntrySerializer(serializers.Serializer):
    """Serializer for one catalog permission."""

    code = serializers.CharField(read_only=True)
    module = serializers.CharField(read_only=True)
    action = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    description = serializers.CharField(read_only=True)
    is_mutating = serializers.SerializerMethodField()

    def get_is_mutating(self, obj) -> bool:
        return PermissionCatalog.is_mutating(obj.action)


class DecisionSerializer(serializers.Serializer):
    """Serializer for a permission Decision."""

    allowed = serializers.BooleanField(read_only=True)
    source = serializers.CharField(read_only=True)
    explanation = serializers.CharField(read_only=True)


class EffectivePermissionSerializer(serializers.Serializer):
    """Serializer for one resolved catalog permission."""

    code = serializers.CharField(read_only=True)
    module = serializers.CharField(read_only=True)
    action = serializers.CharField(read_only=True)
    allowed = serializers.BooleanField(source='decision.allowed', read_only=True)
    source = serializers.CharField(source='decision.source', read_only=True)
    explanation = serializers.CharField(source='decision.explanation', read_only=True)


class PermissionCheckSerializer(serializers.Serializer):
    """Query parameters of a permission check."""

    module = serializers.CharField(required=True, max_length=50)
    action = serializers.CharField(required=True, max_length=20)


# ===== ADMINISTRATION SERIALIZERS =====

class RolePermissionSetSerializer(serializers.Serializer):
    """Serializer for granting or revoking a role permission."""

    module = serializers.CharField(required=True, max_length=50)
    action = serializers.CharField(required=True, max_length=20)
    grant = serializers.BooleanField(required=True)


class UserPermissionSetSerializer(serializers.Serializer):
    """Serializer for setting or clearing a user override."""

    module = serializers.CharField(required=True, max_length=50)
    action = serializers.CharField(required=True, max_length=20)
    granted = serializers.BooleanField(
        required=True,
        allow_null=True,
        help_text="true = explicit allow, false = explicit deny, null = clear override"
    )
    reason = serializers.CharField(
        required=False,
        allow_blank=True,
        default='',
        help_text="Reason for this permission override"
    )


class UserPermissionChangeSerializer(serializers.Serializer):
    module = serializers.CharField(required=True, max_length=50)
    action = serializers.CharField(required=True, max_length=20)
    granted = serializers.BooleanField(required=True, allow_null=True)


class UserPermissionBatchSerializer(serializers.Serializer):
    """Serializer for applying several overrides at once."""

    changes = UserPermissionChangeSerializer(many=True, allow_empty=False)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class CompanyFreezeSerializer(serializers.Serializer):
    """Serializer for freezing or unfreezing a company."""

    frozen = serializers.BooleanField(required=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='', max_length=500)


class UserOverrideSummarySerializer(serializers.Serializer):
    user_id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(source='user__username', read_only=True)
    override_count = serializers.IntegerField(read_only=True)


class AuditLogSerializer(serializers.ModelSerializer):
    """Serializer for AuditLog model."""

    username = serializers.CharField(source='user.username', read_only=True, default=None)
    company_name = serializers.CharField(source='company.name', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'company_name', 'username', 'action',
            'target_type', 'target_id', 'diff', 'metadata',
            'ip_address', 'user_agent', 'request_id',
            'created_at'
        ]
        read_only_fields = fields


# ===== IMPERSONATION SERIALIZERS =====

class ImpersonationStateSerializer(serializers.Serializer):
    is_impersonating = serializers.BooleanField(read_only=True)
    acting_as_company_id = serializers.CharField(read_only=True, allow_null=True)
    company_name = serializers.CharField(read_only=True)
    started_at = serializers.DateTimeField(read_only=True, allow_null=True)
    session_id = serializers.CharField(read_only=True, allow_null=True)


class ImpersonationStartSerializer(serializers.Serializer):
    company_id = serializers.UUIDField(required=True)
