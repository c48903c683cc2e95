"""Grafana API client using httpx."""

from typing import Any

import httpx

from stackctl.config import DatasourceConfig, GrafanaConfig
from stackctl.core.exceptions import GrafanaError
from stackctl.core.logging import StructuredLogger

logger = StructuredLogger(__name__)


class GrafanaClient:
    """Client for the Grafana HTTP API using basic auth."""

    def __init__(self, config: GrafanaConfig, password: str):
        self._config = config
        self._password = password
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            if not self._config.url:
                raise GrafanaError("Grafana URL not configured")

            self._client = httpx.Client(
                base_url=self._config.url.rstrip("/"),
                auth=(self._config.user, self._password),
                headers={"Content-Type": "application/json"},
                timeout=self._config.timeout,
            )

            logger.debug("Created Grafana client", url=self._config.url)

        return self._client

    def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> Any:
        """Make an API request.

        Args:
            method: HTTP method
            path: API path
            **kwargs: Additional request arguments

        Returns:
            Response JSON data
        """
        try:
            response = self.client.request(method, path, **kwargs)
            response.raise_for_status()

            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                raise GrafanaError(
                    f"Invalid JSON response from {path}: {response.text[:200]}",
                    status_code=response.status_code,
                )

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            try:
                message = e.response.json().get("message", str(e))
            except (ValueError, AttributeError):
                message = e.response.text or str(e)

            raise GrafanaError(message, status_code=status_code)

        except httpx.RequestError as e:
            raise GrafanaError(f"Request failed: {e}")

    def post(self, path: str, **kwargs: Any) -> Any:
        """Make a POST request."""
        return self._request("POST", path, **kwargs)

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "GrafanaClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # Datasource operations
    def create_datasource(self, datasource: DatasourceConfig) -> dict[str, Any]:
        """Create a datasource."""
        return self.post("/api/datasources", json=datasource.model_dump())
