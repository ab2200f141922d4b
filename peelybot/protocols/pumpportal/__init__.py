"""
PumpPortal trade quoting service
"""

from .api import TradeQuoteAPI, TradeRequest

__all__ = ["TradeQuoteAPI", "TradeRequest"]
