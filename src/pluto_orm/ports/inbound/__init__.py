"""Inbound ports - API contracts for the ORM core."""

from pluto_orm.ports.inbound.entity_store import EntityStore, StoreStats

__all__ = [
    "EntityStore",
    "StoreStats",
]
