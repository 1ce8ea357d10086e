"""Account directory adapters."""

from .postgres import PostgresAccountDirectory

__all__ = ["PostgresAccountDirectory"]
