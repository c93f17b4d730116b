"""Inbound adapters for the ORM.

Exports:
    CLI:
        - app: Typer application behind the `pluto` command
"""

from pluto_orm.adapters.inbound.cli import app

__all__ = [
    "app",
]
