"""
Tenant Migration - Database Models
Account connections (encrypted credentials) and migration jobs
"""
from sqlalchemy import Column, String, Boolean, Integer, Text, DateTime, JSON, Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
import uuid

from core.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class AccountConnection(Base):
    """
    One set of platform credentials captured when a job starts.
    The API key is stored Fernet-encrypted; jobs reference the row id.
    """
    __tablename__ = "account_connections"
    __table_args__ = (
        Index('idx_account_connections_tenant', 'tenant_id'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(255), nullable=False)  # platform location id
    location_name = Column(String(255))
    api_key_encrypted = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    def __repr__(self):
        return f"<AccountConnection(id={self.id}, tenant_id={self.tenant_id})>"


class MigrationJob(Base):
    """
    Durable record of one migration run and its per-category progress.
    """
    __tablename__ = "migration_jobs"
    __table_args__ = (
        Index('idx_migration_jobs_status', 'status'),
        Index('idx_migration_jobs_created', 'created_at'),
        Index('idx_migration_jobs_destination', 'destination_tenant_id'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Credential references, never the credentials themselves
    source_connection_id = Column(String(36), nullable=False)
    destination_connection_id = Column(String(36), nullable=False)
    source_tenant_id = Column(String(255), nullable=False)
    destination_tenant_id = Column(String(255), nullable=False)
    source_location_name = Column(String(255))
    destination_location_name = Column(String(255))

    # Frozen MigrationOptions
    options = Column(JSONType, default=dict)

    # Status: pending, validating, exporting, importing, completed, failed, cancelled
    status = Column(String(50), default='pending', nullable=False)

    # Progress tracking
    progress_overall = Column(Integer, default=0)
    current_operation = Column(String(255), default='')
    current_category = Column(String(50))
    categories = Column(JSONType, default=dict)  # category -> CategoryProgress

    # Error tracking
    error = Column(Text)
    error_log = Column(JSONType, default=list)

    # Generated artifacts, e.g. workflow recreation prompts
    artifacts = Column(JSONType, default=dict)

    cancel_requested = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<MigrationJob(id={self.id}, status={self.status}, progress={self.progress_overall}%)>"
