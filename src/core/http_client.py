"""
HTTP Client for SquadRelay Plugins

Wraps an aiohttp session with JSON request helpers and uniform error
reporting. Retry policy is left to the caller.
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp


class HTTPRequestError(Exception):
    """
    Exception raised for HTTP request errors.

    ``status`` and ``data`` are set when the server responded; both are
    None when no response was received (connection error, timeout).
    """

    def __init__(self, message: str, status: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.status = status
        self.data = data

    @property
    def has_response(self) -> bool:
        return self.status is not None


class PluginHTTPClient:
    """HTTP client for plugins with error handling"""

    def __init__(self, plugin_name: str):
        """
        Initialize HTTP client.

        Args:
            plugin_name: Name of the plugin using this client
        """
        self.plugin_name = plugin_name
        self.session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self):
        """Ensure HTTP session is created"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> Any:
        try:
            return await response.json(content_type=None)
        except (ValueError, aiohttp.ContentTypeError):
            return await response.text()

    async def request(self, method: str, url: str,
                      data: Optional[Dict[str, Any]] = None,
                      timeout: float = 30,
                      headers: Optional[Dict[str, str]] = None) -> Any:
        """
        Make a single HTTP request with a JSON body.

        Args:
            method: HTTP method
            url: URL to request
            data: Request body, sent as JSON
            timeout: Request timeout in seconds
            headers: HTTP headers

        Returns:
            Decoded JSON response (or text if the body is not JSON)

        Raises:
            HTTPRequestError: On non-2xx status, connection error or timeout
        """
        await self._ensure_session()

        try:
            async with self.session.request(
                method,
                url,
                json=data,
                timeout=aiohttp.ClientTimeout(total=timeout),
                headers=headers
            ) as response:
                body = await self._read_body(response)
                if response.status >= 400:
                    raise HTTPRequestError(
                        f"HTTP {response.status} error from {url}",
                        status=response.status,
                        data=body
                    )
                return body

        except asyncio.TimeoutError:
            raise HTTPRequestError(f"Request timeout after {timeout}s")

        except aiohttp.ClientConnectionError as e:
            raise HTTPRequestError(f"Connection error: {e}")

        except aiohttp.ClientError as e:
            raise HTTPRequestError(f"HTTP request failed: {e}")

    async def put(self, url: str, data: Optional[Dict[str, Any]] = None,
                  timeout: float = 30, headers: Optional[Dict[str, str]] = None) -> Any:
        """
        Make HTTP PUT request.

        Example:
            result = await client.put("https://api.example.com/link",
                                      data={"steamid": "7656...", "eosid": "0002..."})
        """
        return await self.request("PUT", url, data=data, timeout=timeout, headers=headers)

    async def close(self):
        """Close HTTP session"""
        if self.session and not self.session.closed:
            await self.session.close()
