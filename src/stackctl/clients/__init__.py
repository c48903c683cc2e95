"""Clients for external tools and services."""

from stackctl.clients.compose import ComposeClient
from stackctl.clients.grafana import GrafanaClient

__all__ = ["ComposeClient", "GrafanaClient"]
