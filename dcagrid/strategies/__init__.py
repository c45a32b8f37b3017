"""Strategy construction"""

from dcagrid.strategies.factory import create_engine, strategy_type_of

__all__ = ["create_engine", "strategy_type_of"]
