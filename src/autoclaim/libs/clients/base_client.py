from typing import Any, Callable, Dict, Optional

import aiohttp

from autoclaim.main.aiohttp_client import aiohttp_client


class JsonHttpClient:
    """Issues requests relative to a base URL and decodes the JSON body.

    Non-2xx responses raise ``aiohttp.ClientResponseError``; connection
    problems surface as the usual ``aiohttp.ClientError`` subclasses.
    """

    def __init__(
        self,
        base_url: str,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp_client,
    ):
        self.base_url = base_url.rstrip("/")
        self._session_factory = session_factory

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        session = self._session_factory()
        async with session.request(
            method, self._url(path), params=params, json=json, headers=headers
        ) as response:
            if response.status >= 400:
                body = await response.text()
                raise aiohttp.ClientResponseError(
                    response.request_info,
                    response.history,
                    status=response.status,
                    message=body[:200] or (response.reason or ""),
                    headers=response.headers,
                )
            # The queue answers JSON with inconsistent content types
            return await response.json(content_type=None)

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)


class BaseClient:
    def __init__(
        self,
        base_url: str,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp_client,
    ):
        self.base_url = base_url
        self.client = JsonHttpClient(base_url, session_factory=session_factory)
