# readiness_auth/adapters/outbound/persistence/models/user_model.py

"""
User model.

Holds credentials (Argon2 hash and password history), linked OAuth
identities and the pending password reset token.
"""

import uuid

from sqlalchemy import Column, Boolean, String, DateTime, JSON, Uuid, func
from sqlalchemy.orm import relationship

from readiness_auth.adapters.outbound.persistence.models.base_model import Base
from readiness_auth.adapters.outbound.persistence.models.team_model import user_teams


class User(Base):
    """
    Application user.

    Attributes:
        id: Unique identifier (UUID)
        name: Display name
        email: Login email, stored lowercase
        password: Argon2id hash of the active password
        role: Authorization role carried in tokens
        google_id: Linked Google subject, if any
        microsoft_id: Linked Microsoft object id, if any
        password_history: Previous hashes, newest first
        password_strength: Strength label of the active password
        last_password_change: When the password was last set
        reset_token: Pending password reset token
        reset_token_expiry: Expiry of the pending reset token
        is_active: Inactive users cannot log in
        teams: Teams the user belongs to
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, default="")
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)
    role = Column(String(50), nullable=False, default="client")
    google_id = Column(String(255), unique=True, nullable=True)
    microsoft_id = Column(String(255), unique=True, nullable=True)
    password_history = Column(JSON, nullable=False, default=list)
    password_strength = Column(String(20), nullable=True)
    last_password_change = Column(DateTime(timezone=True), nullable=True)
    reset_token = Column(String(128), nullable=True, index=True)
    reset_token_expiry = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    teams = relationship(
        "Team",
        secondary=user_teams,
        backref="users",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(email={self.email}, active={self.is_active})>"
