"""Pydantic models for job posts and provider applications."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ApplicationStatus(str, Enum):
    """Application lifecycle states."""

    applied = "Applied"
    approved = "Approved"
    rejected = "Rejected"


# =============================================================================
# Request Models
# =============================================================================


class JobPostCreate(BaseModel):
    """Request to create a job post."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    duration: str = Field(..., min_length=1)
    service_id: str = Field(..., min_length=1)
    location: str | None = None


class JobPostUpdate(BaseModel):
    """Partial update of a job post. Owner and applications are not editable here."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1)
    duration: str | None = Field(None, min_length=1)
    service_id: str | None = Field(None, min_length=1)
    location: str | None = None


# =============================================================================
# Views
# =============================================================================


class JobApplication(BaseModel):
    id: str
    job_post_id: str
    provider_id: str
    status: ApplicationStatus = ApplicationStatus.applied
    applied_at: datetime


class JobPost(BaseModel):
    """A job post with its applications embedded."""

    id: str
    customer_id: str
    service_id: str
    title: str
    description: str
    duration: str
    location: str | None = None
    applications: list[JobApplication] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
