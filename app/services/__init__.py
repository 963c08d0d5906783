"""Service layer exports."""

from .aggregation import CreatorAggregator, CreatorCollection, CreatorStats
from .engagement import EngagementService
from .powerbi import MockPowerBISource, PowerBIService
from .token_manager import AuthenticationRequiredError, TokenManager, TokenState

__all__ = [
    "AuthenticationRequiredError",
    "CreatorAggregator",
    "CreatorCollection",
    "CreatorStats",
    "EngagementService",
    "MockPowerBISource",
    "PowerBIService",
    "TokenManager",
    "TokenState",
]
