"""SQLAlchemy tables mirroring the in-memory job store."""
from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class JobRecord(Base):
    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True)
    job_code = Column(String(32), unique=True, index=True, nullable=False)
    status = Column(String(50), nullable=False, index=True)
    amount = Column(Float, default=0.0)
    branch_id = Column(Integer)
    # Department blobs, stored as JSON exactly as the departments wrote them
    receptionist = Column(JSON)
    salesperson = Column(JSON)
    design = Column(JSON)
    production = Column(JSON)
    printing = Column(JSON)
    accounts = Column(JSON)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    status_changes = relationship(
        "StatusChangeRecord",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="StatusChangeRecord.changed_at",
    )


class StatusChangeRecord(Base):
    __tablename__ = "job_status_changes"

    id = Column(String(36), primary_key=True)
    job_id = Column(String(36), ForeignKey("jobs.id"), nullable=False)
    from_status = Column(String(50), nullable=False)
    to_status = Column(String(50), nullable=False)
    updated_by = Column(String(255))
    changed_at = Column(DateTime(timezone=True), default=func.now())

    job = relationship("JobRecord", back_populates="status_changes")

    # Indexes
    __table_args__ = (
        Index("idx_status_changes_job", "job_id", "changed_at"),
    )
