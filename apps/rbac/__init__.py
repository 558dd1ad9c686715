"""
RBAC (Role-Based Access Control) application.

Provides per-company access control with:
- A fixed module:action permission catalog
- Per-company role grant matrices seeded from factory defaults
- Per-user allow/deny overrides that take precedence over roles
- Read-only impersonation for platform administrators
- Audit logging of every permission change
"""
