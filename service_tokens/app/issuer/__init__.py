from .permissions import DefaultPermissions, PermissionHook, PermissionPack
from .service import Capability, DomainMembership, Issuer

__all__ = [
    "Capability",
    "DefaultPermissions",
    "DomainMembership",
    "Issuer",
    "PermissionHook",
    "PermissionPack",
]
