"""SQLAlchemy ORM models.

These models define the database schema. DAOs convert them to Pydantic
domain models before returning to services.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from jobrelay.clock import utcnow
from jobrelay.database import Base
from jobrelay.enums import PublishStatus


class JobModel(Base):
    """Job listing ORM model.

    Jobs are created and edited by an external CRUD surface; this service
    reads them and toggles ``is_active``.
    """

    __tablename__ = "jobs"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    company = Column(String, nullable=True)
    location = Column(String, nullable=True)
    job_type = Column(String, nullable=True)
    experience = Column(String, nullable=True)
    salary_range = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    requirements = Column(JSON, nullable=False, default=list)
    responsibilities = Column(JSON, nullable=False, default=list)
    perks = Column(Text, nullable=True)
    destinations = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    publish_records = relationship(
        "PublishRecordModel",
        back_populates="job",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("ix_jobs_active_created", "is_active", "created_at"),)


class PublishRecordModel(Base):
    """Publish record ORM model, one row per (job, destination) attempt."""

    __tablename__ = "publish_records"

    id = Column(String, primary_key=True)
    job_id = Column(String, ForeignKey("jobs.id"), nullable=False, index=True)
    destination = Column(String, nullable=False)
    status = Column(String, nullable=False, default=PublishStatus.PENDING.value)
    post_url = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    attempt_count = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    job = relationship("JobModel", back_populates="publish_records")
    context_sessions = relationship(
        "ContextSessionModel",
        back_populates="publish_record",
    )

    __table_args__ = (Index("ix_publish_records_job_status", "job_id", "status"),)


class CredentialArtifactModel(Base):
    """Persisted browser cookie for an automation account."""

    __tablename__ = "credential_artifacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_key = Column(String, nullable=False, index=True)
    domain = Column(String, nullable=False)
    name = Column(String, nullable=False)
    value = Column(Text, nullable=False)
    path = Column(String, nullable=False, default="/")
    expires = Column(DateTime, nullable=True)
    http_only = Column(Boolean, nullable=False, default=False)
    secure = Column(Boolean, nullable=False, default=False)
    same_site = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "account_key", "domain", "name", "path", name="uq_credential_artifact"
        ),
    )


class ContextSessionModel(Base):
    """Context session ORM model.

    The opaque ``session_token`` is what travels through the messaging
    platform as the referral ref.
    """

    __tablename__ = "context_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_token = Column(String, nullable=False, unique=True)
    publish_record_id = Column(
        String, ForeignKey("publish_records.id"), nullable=True, index=True
    )
    context_data = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    external_user_id = Column(String, nullable=True)
    conversation_started = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)
    last_accessed_at = Column(DateTime, nullable=False, default=utcnow)

    publish_record = relationship(
        "PublishRecordModel", back_populates="context_sessions"
    )

    __table_args__ = (
        Index(
            "ix_context_sessions_user_lookup",
            "external_user_id",
            "is_active",
            "expires_at",
        ),
    )
