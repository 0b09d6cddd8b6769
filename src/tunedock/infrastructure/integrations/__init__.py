"""Clients for external services."""

from tunedock.infrastructure.integrations.http_pool import HttpClientPool

__all__ = ["HttpClientPool"]
