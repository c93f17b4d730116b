"""
Pluto ORM - In-memory query translation and change tracking

A small relational mapping layer over an Author/Course schema demonstrating
deferred query composition, eager and lazy loading, atomic change tracking
and reversible schema migrations.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"
