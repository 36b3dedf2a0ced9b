"""WorkOS API client package.

To publish audit log events:
    from workos_client.core.auditlog import ActionType, new_event

To use SSO or User Management:
    from workos_client.core.sso import SSOService
    from workos_client.core.users import UserService
"""
# Note: core is not imported here; workos_client.core.client reads
# __version__ from this module while it is being imported

__version__ = "0.1.0"
