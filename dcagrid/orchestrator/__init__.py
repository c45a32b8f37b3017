"""Live execution"""

from dcagrid.orchestrator.live_runner import LiveStrategyRunner, PriceFeed
from dcagrid.orchestrator.price_feed import PriceFeedExhausted, ReplayPriceFeed

__all__ = ["LiveStrategyRunner", "PriceFeed", "PriceFeedExhausted", "ReplayPriceFeed"]
