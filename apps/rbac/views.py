"""
RBAC REST API views.

Implements endpoints for:
- The permission catalog
- The current actor's effective permissions and permission checks
- Platform administration of role grants and user overrides
- Impersonation start/stop
- Audit log viewing
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from django.db import transaction
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.companies.models import Company, CompanyUser
from apps.core.exceptions import ValidationError
from apps.core.permissions import requires_permission, HasModulePermission
from apps.rbac.catalog import PermissionCatalog
from apps.rbac.identity import IdentityProvider
from apps.rbac.impersonation import ImpersonationService, ImpersonationSessionStore, ImpersonationState
from apps.rbac.models import AuditLog
from apps.rbac.resolver import EffectivePermission, PermissionResolver
from apps.rbac.serializers import (
    AuditLogSerializer, CatalogEntrySerializer, CompanyFreezeSerializer, DecisionSerializer,
    EffectivePermissionSerializer, ImpersonationStartSerializer,
    ImpersonationStateSerializer, PermissionCheckSerializer,
    RolePermissionSetSerializer, UserOverrideSummarySerializer,
    UserPermissionBatchSerializer, UserPermissionSetSerializer,
)
from apps.rbac.services import AdministrationService, can_access_module, explain


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


def _require_company(request):
    company = getattr(request, 'company', None)
    if company is None:
        raise ValidationError(
            "A company context is required; send the X-COMPANY-ID header",
            details={'header': 'X-COMPANY-ID'}
        )
    return company


def _member_decision(company, user_id, module, action):
    membership = CompanyUser.objects.get_membership(company, user_id)
    actor = IdentityProvider.actor_for_membership(membership)
    return PermissionResolver.resolve(actor, module, action)


# ===== CATALOG & SELF-SERVICE =====

@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='List permission catalog',
        description='''
List every valid module:action permission, grouped by module.

**No permission required** - any authenticated user can read the catalog.
        ''',
        responses={200: OpenApiTypes.OBJECT}
    )
)
class PermissionCatalogView(APIView):
    """
    GET /v1/permissions

    List the permission catalog grouped by module.
    """

    def get(self, request):
        modules = []
        for module in PermissionCatalog.list_modules():
            entries = [entry for entry in PermissionCatalog.entries() if entry.module == module]
            modules.append({
                'module': module.value,
                'label': module.label,
                'permissions': CatalogEntrySerializer(entries, many=True).data,
            })

        return Response({
            'count': len(PermissionCatalog.entries()),
            'modules': modules,
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='List my effective permissions',
        description='''
Resolve every catalog permission for the current user in the current
company. Decisions include the read-only gate for impersonation and
frozen companies. `accessible_modules` lists the modules with at least
one allowed action, for navigation.
        ''',
        responses={200: EffectivePermissionSerializer(many=True)}
    )
)
class MyPermissionsView(APIView):
    """
    GET /v1/me/permissions

    Effective permissions of the current actor.
    """

    def get(self, request):
        company = _require_company(request)
        actor = request.actor
        session = request.impersonation

        permissions = [
            EffectivePermission(entry.module, entry.action, explain(actor, entry.module, entry.action, session))
            for entry in PermissionCatalog.entries()
        ]

        accessible_modules = [
            module.value for module in PermissionCatalog.list_modules()
            if can_access_module(actor, module, session)
        ]

        return Response({
            'company_id': str(company.id),
            'role': actor.role if actor else None,
            'is_impersonating': bool(session and session.is_impersonating),
            'is_frozen': company.is_frozen,
            'accessible_modules': accessible_modules,
            'permissions': EffectivePermissionSerializer(permissions, many=True).data,
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Check one permission',
        description='Explain the decision for one module:action pair for the current user.',
        parameters=[
            OpenApiParameter('module', OpenApiTypes.STR, required=True, description='Module'),
            OpenApiParameter('action', OpenApiTypes.STR, required=True, description='Action'),
        ],
        responses={200: DecisionSerializer}
    )
)
class PermissionCheckView(APIView):
    """
    GET /v1/me/permissions/check?module=&action=
    """

    def get(self, request):
        _require_company(request)
        params = PermissionCheckSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        decision = explain(
            request.actor,
            params.validated_data['module'],
            params.validated_data['action'],
            request.impersonation
        )
        return Response(DecisionSerializer(decision).data)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Audit'],
        summary='List audit logs',
        description='''
List permission audit logs for the current company. Supports filtering by
action, target_type, user and date range.

**Required permission:** `audit:read`
        ''',
        parameters=[
            OpenApiParameter('action', OpenApiTypes.STR, description='Filter by event type'),
            OpenApiParameter('target_type', OpenApiTypes.STR, description='Filter by target type'),
            OpenApiParameter('user_id', OpenApiTypes.INT, description='Filter by acting user ID'),
            OpenApiParameter('from_date', OpenApiTypes.DATETIME, description='Filter from date'),
            OpenApiParameter('to_date', OpenApiTypes.DATETIME, description='Filter to date'),
        ],
        responses={
            200: AuditLogSerializer(many=True),
            403: OpenApiTypes.OBJECT,
        }
    )
)
@requires_permission('audit', 'read')
class AuditLogListView(APIView):
    """
    GET /v1/audit-logs

    Required permission: audit:read
    """

    permission_classes = [HasModulePermission]
    pagination_class = StandardResultsSetPagination

    def get(self, request):
        company = _require_company(request)

        logs = AuditLog.objects.for_company(company).select_related('user', 'company')

        action = request.query_params.get('action')
        if action:
            logs = logs.filter(action=action)

        target_type = request.query_params.get('target_type')
        if target_type:
            logs = logs.filter(target_type=target_type)

        user_id = request.query_params.get('user_id')
        if user_id:
            logs = logs.filter(user_id=user_id)

        from_date = request.query_params.get('from_date')
        if from_date:
            logs = logs.filter(created_at__gte=from_date)

        to_date = request.query_params.get('to_date')
        if to_date:
            logs = logs.filter(created_at__lte=to_date)

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(logs, request)

        serializer = AuditLogSerializer(page, many=True)

        return paginator.get_paginated_response(serializer.data)


# ===== PLATFORM ADMINISTRATION =====

@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Administration'],
        summary='Get role permissions',
        description='''
Grant matrix of one role in a company, one entry per catalog permission.

**Requires platform administrator** (not while impersonating).
        ''',
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT}
    ),
    post=extend_schema(
        tags=['RBAC - Administration'],
        summary='Set role permission',
        description='''
Grant or revoke one permission for a role. Setting the current value is a
no-op and is not audited. The super_admin role cannot be edited.

**Requires platform administrator** (not while impersonating).
        ''',
        request=RolePermissionSetSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT}
    )
)
class RolePermissionsAdminView(APIView):
    """
    GET/POST /v1/admin/companies/{company_id}/roles/{role}/permissions
    """

    def get(self, request, company_id, role):
        company = get_object_or_404(Company, id=company_id)
        grants = AdministrationService.get_role_permissions(
            company, role, caller=request.user, session=request.impersonation
        )

        permissions = [
            {
                'code': entry.code,
                'module': entry.module.value,
                'action': entry.action.value,
                'granted': grants.get(entry.code, False),
            }
            for entry in PermissionCatalog.entries()
        ]
        return Response({
            'company_id': str(company.id),
            'role': role,
            'permissions': permissions,
        })

    @transaction.atomic
    def post(self, request, company_id, role):
        AdministrationService.authorize(request.user, request.impersonation, 'set_role_permission')
        company = get_object_or_404(Company, id=company_id)
        serializer = RolePermissionSetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        changed = AdministrationService.set_role_permission(
            company, role, data['module'], data['action'], data['grant'],
            caller=request.user, session=request.impersonation, request=request
        )
        return Response({
            'role': role,
            'code': PermissionCatalog.require_valid(data['module'], data['action']),
            'grant': data['grant'],
            'changed': changed,
        })


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Administration'],
        summary='Reset role to defaults',
        description='''
Atomically replace every grant of a role with the factory defaults.

**Requires platform administrator** (not while impersonating).
        ''',
        request=None,
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT}
    )
)
class RolePermissionsResetView(APIView):
    """
    POST /v1/admin/companies/{company_id}/roles/{role}/permissions/reset
    """

    def post(self, request, company_id, role):
        company = get_object_or_404(Company, id=company_id)
        count = AdministrationService.reset_to_defaults(
            company, role, caller=request.user, session=request.impersonation, request=request
        )
        return Response({'role': role, 'granted_count': count})


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Administration'],
        summary='List effective permissions of a member',
        description='''
Resolve every catalog permission for one company member, with the source
of each decision.

**Requires platform administrator** (not while impersonating).
        ''',
        responses={200: EffectivePermissionSerializer(many=True), 404: OpenApiTypes.OBJECT}
    ),
    post=extend_schema(
        tags=['RBAC - Administration'],
        summary='Set user override',
        description='''
Explicitly allow (`true`), explicitly deny (`false`) or clear (`null`) one
permission for a member. Overrides take precedence over role grants.

**Requires platform administrator** (not while impersonating).
        ''',
        request=UserPermissionSetSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
)
class UserPermissionsAdminView(APIView):
    """
    GET/POST /v1/admin/companies/{company_id}/users/{user_id}/permissions
    """

    def get(self, request, company_id, user_id):
        company = get_object_or_404(Company, id=company_id)
        permissions = AdministrationService.list_effective_permissions(
            company, user_id, caller=request.user, session=request.impersonation
        )
        return Response({
            'company_id': str(company.id),
            'user_id': user_id,
            'permissions': EffectivePermissionSerializer(permissions, many=True).data,
        })

    @transaction.atomic
    def post(self, request, company_id, user_id):
        AdministrationService.authorize(request.user, request.impersonation, 'set_user_permission')
        company = get_object_or_404(Company, id=company_id)
        serializer = UserPermissionSetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        changed = AdministrationService.set_user_permission(
            company, user_id, data['module'], data['action'], data['granted'],
            caller=request.user, session=request.impersonation,
            reason=data['reason'], request=request
        )
        decision = _member_decision(company, user_id, data['module'], data['action'])
        return Response({
            'user_id': user_id,
            'code': PermissionCatalog.require_valid(data['module'], data['action']),
            'granted': data['granted'],
            'changed': changed,
            'decision': DecisionSerializer(decision).data,
        })


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Administration'],
        summary='Set several user overrides',
        description='''
Apply a list of override changes in one transaction. Every pair is
validated before anything is written.

**Requires platform administrator** (not while impersonating).
        ''',
        request=UserPermissionBatchSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT}
    )
)
class UserPermissionsBatchView(APIView):
    """
    POST /v1/admin/companies/{company_id}/users/{user_id}/permissions/batch
    """

    def post(self, request, company_id, user_id):
        AdministrationService.authorize(request.user, request.impersonation, 'set_user_permissions_batch')
        company = get_object_or_404(Company, id=company_id)
        serializer = UserPermissionBatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        changed = AdministrationService.set_user_permissions_batch(
            company, user_id,
            [(change['module'], change['action'], change['granted']) for change in data['changes']],
            caller=request.user, session=request.impersonation,
            reason=data['reason'], request=request
        )
        return Response({'user_id': user_id, 'changed': changed})


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Administration'],
        summary='List users with overrides',
        description='''
Members of a company that carry at least one override, with counts.

**Requires platform administrator** (not while impersonating).
        ''',
        responses={200: UserOverrideSummarySerializer(many=True)}
    )
)
class CompanyOverridesView(APIView):
    """
    GET /v1/admin/companies/{company_id}/overrides
    """

    def get(self, request, company_id):
        company = get_object_or_404(Company, id=company_id)
        rows = AdministrationService.list_users_with_overrides(
            company, caller=request.user, session=request.impersonation
        )
        return Response({
            'count': len(rows),
            'users': UserOverrideSummarySerializer(rows, many=True).data,
        })


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Administration'],
        summary='Freeze or unfreeze a company',
        description='''
Freeze (`true`) or unfreeze (`false`) a company. A frozen company stays
reachable, but every mutating permission check in it denies, whatever the
role or overrides. Setting the current state is a no-op and is not audited.

**Requires platform administrator** (not while impersonating).
        ''',
        request=CompanyFreezeSerializer,
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT}
    )
)
class CompanyFreezeView(APIView):
    """
    POST /v1/admin/companies/{company_id}/freeze
    """

    def post(self, request, company_id):
        AdministrationService.authorize(request.user, request.impersonation, 'set_company_frozen')
        company = get_object_or_404(Company, id=company_id)
        serializer = CompanyFreezeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        changed = AdministrationService.set_company_frozen(
            company, data['frozen'],
            caller=request.user, session=request.impersonation,
            reason=data['reason'], request=request
        )
        return Response({
            'company_id': str(company.id),
            'is_frozen': company.is_frozen,
            'changed': changed,
        })


# ===== IMPERSONATION =====

@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Impersonation'],
        summary='Get impersonation state',
        responses={200: ImpersonationStateSerializer}
    )
)
class ImpersonationStatusView(APIView):
    """
    GET /v1/admin/impersonation
    """

    def get(self, request):
        state = request.impersonation or ImpersonationState()
        return Response(ImpersonationStateSerializer(state).data)


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Impersonation'],
        summary='Start impersonating a company',
        description='''
View a company as its company_admin. While impersonating, mutating actions
are read-only and permission administration is refused.

**Requires platform administrator.**
        ''',
        request=ImpersonationStartSerializer,
        responses={201: ImpersonationStateSerializer, 403: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT}
    )
)
class ImpersonationStartView(APIView):
    """
    POST /v1/admin/impersonation/start
    """

    def post(self, request):
        serializer = ImpersonationStartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        company = get_object_or_404(Company, id=serializer.validated_data['company_id'])

        state = ImpersonationService.start(
            request.user, company, ImpersonationSessionStore(request.session), request=request
        )
        return Response(ImpersonationStateSerializer(state).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Impersonation'],
        summary='Stop impersonating',
        request=None,
        responses={200: OpenApiTypes.OBJECT}
    )
)
class ImpersonationStopView(APIView):
    """
    POST /v1/admin/impersonation/stop
    """

    def post(self, request):
        state = ImpersonationService.stop(
            request.user, ImpersonationSessionStore(request.session), request=request
        )
        return Response({
            'stopped': state is not None,
            'duration_seconds': state.duration_seconds if state else None,
        })
