# readiness_auth/adapters/outbound/persistence/models/__init__.py

"""
Data models.

Exports every SQLAlchemy model so that importing this package registers
them on Base.metadata (used by create_tables and Alembic).
"""

from readiness_auth.adapters.outbound.persistence.models.base_model import Base
from readiness_auth.adapters.outbound.persistence.models.team_model import Team, user_teams
from readiness_auth.adapters.outbound.persistence.models.user_model import User
from readiness_auth.adapters.outbound.persistence.models.assessment_model import Assessment

__all__ = [
    "Base",
    "User",
    "Team",
    "user_teams",
    "Assessment",
]
