from .members import MembershipRegistry
from .resolver import PermissionResolver
from .roles import RolePatch, RoleStore
from .service import Catalog, RbacService
from .store import InMemoryRbacStore, RbacStore

__all__ = [
    "Catalog",
    "InMemoryRbacStore",
    "MembershipRegistry",
    "PermissionResolver",
    "RbacService",
    "RbacStore",
    "RolePatch",
    "RoleStore",
]
