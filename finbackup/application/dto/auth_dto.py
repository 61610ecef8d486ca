from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """Caller identity supplied by the session layer."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    user_id: str = Field(..., min_length=1)
    phone: str = ""
