"""Proof payload variants, one per proof method.

The payload is a tagged union discriminated on ``method`` so that each
method carries exactly the fields it needs.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

# Required text fields must contain something other than whitespace
NON_BLANK = r"\S"


class MediaProof(BaseModel):
    method: Literal["media"] = "media"
    content_uri: str = Field(pattern=NON_BLANK)
    content_hash: str = Field(pattern=NON_BLANK)
    caption: Optional[str] = None

    model_config = {"frozen": True}


class GeolocationProof(BaseModel):
    method: Literal["geolocation"] = "geolocation"
    latitude: float = Field(ge=-90, le=90, strict=True)
    longitude: float = Field(ge=-180, le=180, strict=True)
    recorded_at: Optional[datetime] = None

    model_config = {"frozen": True}


class ExternalActivityProof(BaseModel):
    method: Literal["external_activity"] = "external_activity"
    activity_id: str = Field(pattern=NON_BLANK)
    provider: Optional[str] = None

    model_config = {"frozen": True}


class RepositoryCommitProof(BaseModel):
    method: Literal["repository_commit"] = "repository_commit"
    repository_url: str = Field(pattern=NON_BLANK)
    commit_hash: str = Field(pattern=r"^[0-9a-fA-F]{40}$")

    model_config = {"frozen": True}


class CustomProof(BaseModel):
    method: Literal["custom"] = "custom"
    data: dict[str, Any]

    model_config = {"frozen": True}

    @field_validator("data")
    @classmethod
    def _non_empty(cls, value: dict[str, Any]) -> dict[str, Any]:
        if not value:
            raise ValueError("custom proof data must not be empty")
        return value


ProofPayload = Annotated[
    Union[MediaProof, GeolocationProof, ExternalActivityProof, RepositoryCommitProof, CustomProof],
    Field(discriminator="method"),
]


class Proof(BaseModel):
    """Creator-submitted evidence that a wish's goal was met."""

    proof_id: str
    wish_id: str
    submitter_id: str
    payload: ProofPayload
    created_at: datetime

    model_config = {"frozen": True}

    @property
    def method(self) -> str:
        return self.payload.method
