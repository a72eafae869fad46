"""mnemo database layer."""

from mnemo.db.connection import Capability, Database
from mnemo.db.migrations import MIGRATIONS, run_migrations
from mnemo.db.repository import Repository
from mnemo.db.schema import initialize
from mnemo.db.vectors import ensure_vec_table, vector_dims

__all__ = [
    "Capability",
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "vector_dims",
]
