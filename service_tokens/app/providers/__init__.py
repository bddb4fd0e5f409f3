from .resolver import IdentityResolver, ProviderRegistry
from .userinfo import UserInfoResolver

__all__ = ["IdentityResolver", "ProviderRegistry", "UserInfoResolver"]
