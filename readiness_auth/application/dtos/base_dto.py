# readiness_auth/application/dtos/base_dto.py

"""
Base class for the application's DTOs.
"""

from pydantic import BaseModel
from typing import Any, Dict


class CustomBaseModel(BaseModel):
    """
    Base model for every DTO.

    model_dump() leaves out fields whose value is None, so partial update
    payloads only carry the fields the client actually sent.
    """

    def model_dump(self, *args, **kwargs) -> Dict[str, Any]:
        d = super().model_dump(*args, **kwargs)
        return {k: v for k, v in d.items() if v is not None}
