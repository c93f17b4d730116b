"""Adapters layer - concrete implementations around the core.

- Inbound adapters: Handle incoming requests (the `pluto` console)
- Outbound adapters: Render plans for external consumers (SQL text)
"""

from pluto_orm.adapters.outbound import SqlRenderer

__all__ = [
    # Outbound adapters
    "SqlRenderer",
]
