# readiness_auth/adapters/outbound/persistence/repositories/__init__.py

"""
Repositories for the persisted entities (Repository pattern).
"""

from readiness_auth.adapters.outbound.persistence.repositories.base_repository import AsyncCRUDBase
from readiness_auth.adapters.outbound.persistence.repositories.user_repository import AsyncUserCRUD, user_repository
from readiness_auth.adapters.outbound.persistence.repositories.team_repository import AsyncTeamCRUD, team_repository

__all__ = [
    # Classes
    "AsyncCRUDBase",
    "AsyncUserCRUD",
    "AsyncTeamCRUD",

    # Instances
    "user_repository",
    "team_repository",
]
