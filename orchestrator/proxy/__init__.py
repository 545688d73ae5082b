"""Proxy pool package: endpoint parsing, rotation strategies and a timed blacklist."""

from orchestrator.proxy.manager import ProxyPoolManager
from orchestrator.proxy.strategies import RotationStrategy
from orchestrator.proxy.types import ProxyEndpoint, ProxyStats

__all__ = ["ProxyEndpoint", "ProxyPoolManager", "ProxyStats", "RotationStrategy"]
