"""
External service clients

- pumpportal: trade quoting service returning unsigned swap transactions
- helius: token metadata (DAS getAsset)
"""

from .pumpportal import TradeQuoteAPI, TradeRequest
from .helius import TokenMetadata, TokenMetadataAPI

__all__ = [
    "TradeQuoteAPI",
    "TradeRequest",
    "TokenMetadata",
    "TokenMetadataAPI",
]
