"""Diamond Marketplace: a role-based food ordering engine with live delivery tracking."""

from .config import MarketplaceSettings
from .session import MarketplaceSession

__all__ = ["MarketplaceSession", "MarketplaceSettings"]
