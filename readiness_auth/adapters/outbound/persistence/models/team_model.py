# readiness_auth/adapters/outbound/persistence/models/team_model.py

import uuid

from sqlalchemy import Column, String, DateTime, Table, ForeignKey, Uuid, func

from readiness_auth.adapters.outbound.persistence.models.base_model import Base

# Many-to-many association between users and teams, with the member's role
user_teams = Table(
    "user_teams",
    Base.metadata,
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("team_id", Uuid, ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
    Column("role", String(50), nullable=False, default="member"),
)


class Team(Base):
    """
    Tenant grouping for users.

    New accounts join the internal team or the default client team
    depending on their email domain.
    """
    __tablename__ = "teams"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Team(name={self.name})>"
