from .rbac import RoleGrantRecord, RoleMembershipRecord, RoleRecord, UserRecord

__all__ = ["RoleGrantRecord", "RoleMembershipRecord", "RoleRecord", "UserRecord"]
