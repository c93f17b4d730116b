"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts. The
in-memory EntityStore implements the inbound store port; a store backed by
real storage would implement the same protocol.
"""

from pluto_orm.ports.inbound import EntityStore, StoreStats

__all__ = [
    "EntityStore",
    "StoreStats",
]
