"""Repository adapters - One-time code store implementations."""

from .memory import InMemoryOneTimeCodeStore
from .postgres import PostgresOneTimeCodeStore, run_migrations

__all__ = ["InMemoryOneTimeCodeStore", "PostgresOneTimeCodeStore", "run_migrations"]
