"""SQLAlchemy table definitions - dialect-agnostic (works with SQLite and PostgreSQL)."""

from sqlalchemy import Column, DateTime, Index, Integer, MetaData, String, Table
from sqlalchemy.types import JSON

# Metadata object for all tables
metadata = MetaData()

# ============================================================================
# SOURCES TABLE
# ============================================================================
sources_table = Table(
    "sources",
    metadata,
    Column("kind", String(64), primary_key=True),  # SourceKind as string
    Column("namespace", String(253), primary_key=True),
    Column("name", String(253), primary_key=True),
    Column("uid", String, nullable=False, unique=True),
    Column("generation", Integer, nullable=False),  # Bumped on spec change
    Column("resource_version", Integer, nullable=False),  # Bumped on every write
    Column("labels", JSON, nullable=False),
    Column("finalizers", JSON, nullable=False),
    Column("deletion_timestamp", DateTime(timezone=True), nullable=True),
    Column("spec", JSON, nullable=False),
    Column("status", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

Index("idx_sources_namespace", sources_table.c.namespace)
