"""Persistence interface and the in-memory implementation."""

from orchestrator.store.base import ResultStore
from orchestrator.store.memory import InMemoryResultStore

__all__ = ["InMemoryResultStore", "ResultStore"]
