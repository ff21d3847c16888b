"""SQLAlchemy models owned by the snapshot engine.

The job-tracking tables live elsewhere; only the schema-version ledger is
defined here because snapshots are stamped with its latest entry.
"""

from .migrations import MIGRATIONS_TABLE, SchemaMigration  # noqa: F401
