"""
Token metadata lookups
"""

from .api import TokenMetadata, TokenMetadataAPI, parse_asset_response

__all__ = ["TokenMetadata", "TokenMetadataAPI", "parse_asset_response"]
