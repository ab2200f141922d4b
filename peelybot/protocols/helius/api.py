"""
Token metadata client (DAS getAsset over JSON-RPC)
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ...config import config as global_config
from ...errors import ConfigurationError, MalformedUpstreamResponse

logger = logging.getLogger(__name__)

SOURCE = "token metadata service"


@dataclass(frozen=True)
class TokenMetadata:
    """Subset of asset metadata used by the bot"""
    mint: str
    symbol: Optional[str] = None
    name: Optional[str] = None


def _require_dict(value: Any, path: str) -> dict:
    if not isinstance(value, dict):
        raise MalformedUpstreamResponse(SOURCE, f"'{path}' is not an object")
    return value


def parse_asset_response(mint: str, data: Any) -> TokenMetadata:
    """
    Validate a getAsset response and extract the metadata

    Raises:
        MalformedUpstreamResponse: Required fields are missing or mistyped
    """
    body = _require_dict(data, "response")
    if "error" in body:
        error = body["error"]
        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        raise MalformedUpstreamResponse(SOURCE, f"getAsset error for {mint}: {message}")

    result = _require_dict(body.get("result"), "result")
    content = _require_dict(result.get("content"), "result.content")
    metadata = _require_dict(content.get("metadata"), "result.content.metadata")

    symbol = metadata.get("symbol")
    name = metadata.get("name")
    if symbol is not None and not isinstance(symbol, str):
        raise MalformedUpstreamResponse(SOURCE, "'symbol' is not a string")
    if name is not None and not isinstance(name, str):
        raise MalformedUpstreamResponse(SOURCE, "'name' is not a string")

    return TokenMetadata(mint=mint, symbol=symbol or None, name=name or None)


class TokenMetadataAPI:
    """
    getAsset lookups against a DAS-capable RPC endpoint

    Usage:
        api = TokenMetadataAPI("https://mainnet.helius-rpc.com/?api-key=...")
        meta = api.get_asset(mint)
        print(meta.symbol)
    """

    def __init__(
        self,
        url: str = None,
        timeout: float = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self._url = url or global_config.metadata.url or global_config.rpc.url
        if not self._url:
            raise ConfigurationError.missing("METADATA_RPC_URL or RPC_ENDPOINT")
        self._timeout = timeout if timeout is not None else global_config.metadata.timeout
        self._client: Optional[httpx.Client] = http_client

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def get_asset(self, mint: str) -> TokenMetadata:
        """
        Fetch token metadata

        Raises:
            MalformedUpstreamResponse: Unexpected status or payload
        """
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getAsset",
            "params": [mint],
        }
        try:
            response = self._get_client().post(
                self._url,
                json=body,
                headers={"accept": "application/json", "content-type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise MalformedUpstreamResponse(SOURCE, f"request failed: {e}", e)
        if response.status_code != 200:
            raise MalformedUpstreamResponse(SOURCE, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedUpstreamResponse(SOURCE, "body is not JSON", e)

        return parse_asset_response(mint, data)

    def close(self):
        """Close HTTP client"""
        if self._client:
            self._client.close()
            self._client = None
