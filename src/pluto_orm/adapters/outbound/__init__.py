"""Outbound adapters.

Exports:
    - SqlRenderer: Renders query plans as SQL text with sqlglot
"""

from pluto_orm.adapters.outbound.sql_renderer import SqlRenderer

__all__ = [
    "SqlRenderer",
]
