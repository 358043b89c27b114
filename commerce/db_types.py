"""Database-agnostic type definitions for SQLAlchemy models.

Models must run on PostgreSQL in production and SQLite in tests.
"""
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")
