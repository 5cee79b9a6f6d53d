"""
models.py — Database table definitions for the practice-management core.

Client references (e.g. 1A001) are minted from reference_buckets and stored on
clients.client_ref. Dependent records copy client_ref as a denormalized column.
Bucket rows are never deleted and are only written through the bucket store.
"""

from datetime import datetime, timezone
from database import db
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, JSON,
    ForeignKey, CheckConstraint, UniqueConstraint, Enum as PgEnum, Index
)
from sqlalchemy.orm import relationship
import uuid
import enum


# ─────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────

class ClientStatus(enum.Enum):
    active = "ACTIVE"
    inactive = "INACTIVE"
    archived = "ARCHIVED"


# ─────────────────────────────────────────────
# Helper
# ─────────────────────────────────────────────

def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


# ─────────────────────────────────────────────
# 1. Portfolios
# ─────────────────────────────────────────────

class Portfolio(db.Model):
    __tablename__ = "portfolios"

    code = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    clients = relationship("Client", back_populates="portfolio")

    def to_dict(self, client_count=None):
        data = {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if client_count is not None:
            data["client_count"] = client_count
        return data

    def __repr__(self):
        return f"<Portfolio {self.code} {self.name}>"


# ─────────────────────────────────────────────
# 2. Reference buckets (one per portfolio + alpha letter)
# ─────────────────────────────────────────────

class ReferenceBucket(db.Model):
    __tablename__ = "reference_buckets"

    # No FK to portfolios: the code range is validated by the registry and a
    # bucket may exist before an administrator names the portfolio.
    portfolio_code = Column(Integer, primary_key=True, autoincrement=False)
    alpha = Column(String(1), primary_key=True)
    next_index = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("next_index >= 1", name="ck_reference_buckets_next_index_positive"),
        CheckConstraint("alpha >= 'A' AND alpha <= 'Z'", name="ck_reference_buckets_alpha_range"),
    )

    def __repr__(self):
        return f"<ReferenceBucket {self.portfolio_code}{self.alpha} next={self.next_index}>"


# ─────────────────────────────────────────────
# 3. Clients
# ─────────────────────────────────────────────

class Client(db.Model):
    __tablename__ = "clients"

    client_id = Column(String(36), primary_key=True, default=new_uuid)
    # Nullable only for legacy rows waiting on the backfill job
    client_ref = Column(String(20), nullable=True)
    portfolio_code = Column(Integer, ForeignKey("portfolios.code", ondelete="RESTRICT"), nullable=False)
    name = Column(String(255), nullable=False)
    status = Column(
        PgEnum(ClientStatus, name="client_status_enum"),
        nullable=False,
        default=ClientStatus.active
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    portfolio = relationship("Portfolio", back_populates="clients")

    __table_args__ = (
        UniqueConstraint("client_ref", name="uq_clients_client_ref"),
        Index("ix_clients_portfolio_code", "portfolio_code"),
    )

    def to_dict(self):
        return {
            "client_id": self.client_id,
            "client_ref": self.client_ref,
            "portfolio_code": self.portfolio_code,
            "name": self.name,
            "status": self.status.value if self.status else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Client {self.client_ref} — {self.name}>"


# ─────────────────────────────────────────────
# 4. Audit log
# ─────────────────────────────────────────────

class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    log_id = Column(String(36), primary_key=True, default=new_uuid)
    action = Column(Text, nullable=False)                        # e.g. "client_ref.issued"
    record_type = Column(String(100), nullable=True)            # e.g. "client"
    record_id = Column(String(36), nullable=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    details = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_audit_logs_timestamp", "timestamp"),
        Index("ix_audit_logs_record_id", "record_id"),
    )

    def __repr__(self):
        return f"<AuditLog {self.action} at {self.timestamp}>"
