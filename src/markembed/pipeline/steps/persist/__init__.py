"""Persistence step: file records, sections and usage counters."""

from .coordinator import PersistenceCoordinator

__all__ = ["PersistenceCoordinator"]
