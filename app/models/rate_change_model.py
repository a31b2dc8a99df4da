from sqlalchemy import Column, String, Date, DateTime, Numeric, Index
from sqlalchemy.sql import func

from app.models.common import new_id, utcnow
from app.utils.database import Base


class RateChange(Base):
    """Append-only history of recurring-rate changes per subject."""

    __tablename__ = "rate_changes"
    __table_args__ = (
        Index("ix_rate_changes_subject", "tenant_id", "subject_kind", "subject_id", "effective_from"),
    )

    rate_change_id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False)

    subject_kind = Column(String(20), nullable=False)  # STUDENT / TEACHER / STAFF
    subject_id = Column(String(36), nullable=False)

    previous_rate = Column(Numeric(14, 2), nullable=True)
    new_rate = Column(Numeric(14, 2), nullable=False)
    effective_from = Column(Date, nullable=False)

    created_by = Column(String(36), nullable=True)
    created_on = Column(DateTime, default=utcnow, server_default=func.now(), nullable=False)
