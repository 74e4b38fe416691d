"""Local domain models: credentials, session tokens and asset status."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AssetStatus(str, Enum):
    """
    Workflow status of an asset version.

    * DRAFT: Newly created, editable.
    * IN_REVIEW: Submitted for review.
    * APPROVED: Accepted by a reviewer.
    * PUBLISHED: Visible to consumers of the project.
    * REJECTED: Declined during review.
    * WITHDRAWN: Pulled back out of the review workflow.
    """

    DRAFT = "Draft"
    IN_REVIEW = "InReview"
    APPROVED = "Approved"
    PUBLISHED = "Published"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"

    @classmethod
    def parse(cls, value: str) -> "AssetStatus":
        """
        Parses a status name, ignoring case, spaces, hyphens and underscores.

        Raises:
            ValueError: If the value does not name a known status.
        """
        normalized = "".join(ch for ch in value.lower() if ch not in " _-")
        for status in cls:
            if status.value.lower() == normalized:
                return status
        raise ValueError(
            f"Unknown asset status '{value}'. Expected one of: "
            + ", ".join(s.value for s in cls)
        )

    @property
    def path_segment(self) -> str:
        """The lowercase form used in status change URLs."""
        return self.value.lower()


class Credential(BaseModel):
    """
    Non-secret part of the service account credentials.

    The client secret is kept in the OS vault under :meth:`secret_key`
    and is never part of this model.

    Attributes:
        organization_id (str): Unity organization ID.
        project_id (str): Unity project ID.
        environment_id (str): Unity environment ID.
        client_id (str): Service account key ID.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    organization_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    environment_id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)

    def secret_key(self) -> str:
        """Composite vault key derived from the four identifiers."""
        return ":".join(
            [self.organization_id, self.project_id, self.environment_id, self.client_id]
        )


class SessionToken(BaseModel):
    """
    A bearer token and its absolute expiry (epoch seconds).
    """

    value: str
    expires_at: float

    def is_valid(self, now: float, safety_margin: float = 0.0) -> bool:
        return now < self.expires_at - safety_margin

    def __repr__(self) -> str:
        return f"SessionToken(value='***', expires_at={self.expires_at})"

    __str__ = __repr__


class StatusChange(BaseModel):
    """
    Outcome of a status change request.

    Attributes:
        previous (AssetStatus): Status read before any step was applied.
        current (AssetStatus): Status after the last applied step.
        applied (List[AssetStatus]): Steps sent to the service, in order.
    """

    previous: AssetStatus
    current: AssetStatus
    applied: List[AssetStatus] = []

    def to_dict(self) -> Dict[str, object]:
        return self.model_dump(mode="json")


class FileUploadResult(BaseModel):
    """
    Outcome of a single file upload inside an asset.
    """

    path: str
    dataset_id: Optional[str] = None
    size_bytes: int = 0
    elapsed_seconds: float = 0.0
