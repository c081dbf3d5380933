# readiness_auth/adapters/outbound/persistence/models/assessment_model.py

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid, func

from readiness_auth.adapters.outbound.persistence.models.base_model import Base


class Assessment(Base):
    """
    Assessment ownership record.

    Assessments taken before sign-up are stored with guest_email and
    no user_id; they are claimed when an account with that email is created.
    """
    __tablename__ = "assessments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    guest_email = Column(String(255), nullable=True, index=True)
    title = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
