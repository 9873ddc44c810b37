from autoclaim.libs.clients.base_client import BaseClient, JsonHttpClient

__all__ = ["BaseClient", "JsonHttpClient"]
