from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateIntakeLinkRequest(_CamelModel):
    # Optional here so a missing workspace answers 400 INVALID_CLAIMS, not 422
    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")
    channels: Optional[List[str]] = None
    expires_in_hours: Optional[float] = Field(default=None, alias="expiresInHours")


class CreateNewClientLinkRequest(_CamelModel):
    channels: Optional[List[str]] = None
    expires_in_hours: Optional[float] = Field(default=None, alias="expiresInHours")


class IntakeSubmission(BaseModel):
    responses: Dict[str, Any] = Field(default_factory=dict)
