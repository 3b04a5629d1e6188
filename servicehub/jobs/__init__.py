"""Job posts and provider applications.

Models:
- JobPost: A customer's posting, with its applications embedded
- JobApplication: A provider's application to a post
- ApplicationStatus: Applied / Approved / Rejected

Service:
- JobPostService: create, update, delete, list, apply, approve/reject applications
"""

from .models import ApplicationStatus, JobApplication, JobPost, JobPostCreate, JobPostUpdate
from .service import JobPostService

__all__ = [
    # Models
    "JobPost",
    "JobApplication",
    "ApplicationStatus",
    "JobPostCreate",
    "JobPostUpdate",
    # Service
    "JobPostService",
]
