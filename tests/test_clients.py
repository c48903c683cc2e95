"""Tests for the container engine and Grafana clients."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from conftest import FakeRunner
from stackctl.clients.compose import ComposeClient
from stackctl.clients.grafana import GrafanaClient
from stackctl.config import DatasourceConfig, GrafanaConfig
from stackctl.core.exceptions import GrafanaError


class TestComposeClient:
    """Tests for ComposeClient."""

    @pytest.fixture
    def runner(self):
        return FakeRunner()

    def test_build(self, runner):
        client = ComposeClient(runner, build_timeout=600)
        client.build("app:1", "./app", {"A": "1"})
        assert runner.calls == [("docker", "build", "-t", "app:1", "--build-arg", "A=1", "./app")]

    def test_up_with_services(self, runner):
        ComposeClient(runner).up(["mysql", "redis"])
        assert runner.calls == [("docker-compose", "up", "-d", "mysql", "redis")]

    def test_up_with_other_compose_file(self, runner):
        ComposeClient(runner).up(compose_file="monitoring.yml")
        assert runner.calls == [("docker-compose", "-f", "monitoring.yml", "up", "-d")]

    def test_plugin_style_command_and_default_file(self, runner):
        client = ComposeClient(runner, compose_command=["docker", "compose"], compose_file="stack.yml")
        client.down(remove_orphans=False)
        assert runner.calls == [("docker", "compose", "-f", "stack.yml", "down")]

    def test_exec_passes_env_as_secrets(self, runner):
        ComposeClient(runner).exec("redis", ["redis-cli", "ping"], env={"REDISCLI_AUTH": "pw"})
        assert runner.calls == [
            ("docker-compose", "exec", "-T", "-e", "REDISCLI_AUTH=pw", "redis", "redis-cli", "ping")
        ]
        assert runner.secrets == [("pw",)]

    def test_exec_without_env(self, runner):
        ComposeClient(runner).exec("php", ["php-fpm", "-t"])
        assert runner.calls == [("docker-compose", "exec", "-T", "php", "php-fpm", "-t")]

    def test_ps(self, runner):
        ComposeClient(runner).ps()
        assert runner.calls == [("docker-compose", "ps")]


def _grafana_with_transport(handler) -> GrafanaClient:
    client = GrafanaClient(GrafanaConfig(), "pw")
    client._client = httpx.Client(
        base_url="http://localhost:3000",
        transport=httpx.MockTransport(handler),
    )
    return client


class TestGrafanaClient:
    """Tests for GrafanaClient."""

    def test_client_initialization(self):
        client = GrafanaClient(GrafanaConfig(), "pw")
        assert client._client is None

    @patch("stackctl.clients.grafana.httpx.Client")
    def test_client_uses_basic_auth(self, mock_client):
        config = GrafanaConfig(url="http://grafana:3000/", user="ops", timeout=5)

        GrafanaClient(config, "pw").client

        mock_client.assert_called_once_with(
            base_url="http://grafana:3000",
            auth=("ops", "pw"),
            headers={"Content-Type": "application/json"},
            timeout=5,
        )

    @patch("stackctl.clients.grafana.GrafanaClient._request")
    def test_create_datasource(self, mock_request):
        mock_request.return_value = {"id": 1, "message": "Datasource added"}

        result = GrafanaClient(GrafanaConfig(), "pw").create_datasource(DatasourceConfig())

        assert result["id"] == 1
        mock_request.assert_called_once_with(
            "POST",
            "/api/datasources",
            json={
                "name": "Prometheus",
                "type": "prometheus",
                "url": "http://prometheus:9090",
                "access": "proxy",
            },
        )

    def test_empty_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201)

        assert _grafana_with_transport(handler).create_datasource(DatasourceConfig()) is None

    def test_success_without_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>ok</html>")

        client = _grafana_with_transport(handler)
        with pytest.raises(GrafanaError, match="Invalid JSON") as exc_info:
            client.create_datasource(DatasourceConfig())

        assert exc_info.value.status_code == 200

    def test_request_sends_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": 7})

        with _grafana_with_transport(handler) as client:
            assert client.create_datasource(DatasourceConfig(name="Metrics")) == {"id": 7}

        assert seen["path"] == "/api/datasources"
        assert seen["body"]["name"] == "Metrics"

    def test_conflict_keeps_status_code(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={"message": "data source with the same name already exists"})

        client = _grafana_with_transport(handler)
        with pytest.raises(GrafanaError) as exc_info:
            client.create_datasource(DatasourceConfig())

        assert exc_info.value.status_code == 409
        assert "already exists" in str(exc_info.value)

    def test_error_without_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        client = _grafana_with_transport(handler)
        with pytest.raises(GrafanaError) as exc_info:
            client.create_datasource(DatasourceConfig())

        assert exc_info.value.status_code == 502
        assert "Bad Gateway" in str(exc_info.value)

    def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _grafana_with_transport(handler)
        with pytest.raises(GrafanaError, match="Request failed"):
            client.create_datasource(DatasourceConfig())

    def test_close(self):
        client = GrafanaClient(GrafanaConfig(), "pw")
        client._client = MagicMock()
        inner = client._client

        client.close()

        inner.close.assert_called_once()
        assert client._client is None
