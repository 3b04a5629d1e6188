"""Job post routes.

Endpoints for customer job posts and provider applications.
"""

from fastapi import APIRouter, Request, status

from ..auth import AnyRole, CustomerIdentity, CustomerOrAdmin, ProviderIdentity
from ..database import Database
from ..jobs import JobPostCreate, JobPostService, JobPostUpdate
from ..logging_config import get_logger
from ..models import ApiResponse

logger = get_logger("servicehub.routes.job_posts")
router = APIRouter(prefix="/job-posts", tags=["job-posts"])


@router.get("", response_model=ApiResponse)
async def list_job_posts(request: Request, identity: AnyRole, db: Database):
    """
    List job posts.

    Customers only ever see their own posts. Supports ``search`` over title,
    description, location and duration, exact-match filters, ``page``,
    ``limit`` and ``sort``.
    """
    logger.info(f"GET /job-posts | {identity.role.value}={identity.id}")
    result = JobPostService(db).list_posts(identity, dict(request.query_params))
    return ApiResponse(data=result.data, pagination=result.pagination)


@router.get("/{post_id}", response_model=ApiResponse)
async def get_job_post(post_id: str, identity: AnyRole, db: Database):
    return ApiResponse(data={"jobPost": JobPostService(db).get(identity, post_id)})


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_job_post(post: JobPostCreate, customer: CustomerIdentity, db: Database):
    logger.info(f"POST /job-posts | customer={customer.id} | title={post.title[:50]}")
    created = JobPostService(db).create(customer, post)
    return ApiResponse(
        statusCode=status.HTTP_201_CREATED,
        message="Job post created successfully",
        data={"jobPost": created},
    )


@router.put("/{post_id}", response_model=ApiResponse)
async def update_job_post(post_id: str, update: JobPostUpdate, identity: CustomerOrAdmin, db: Database):
    logger.info(f"PUT /job-posts/{post_id} | {identity.role.value}={identity.id}")
    updated = JobPostService(db).update(identity, post_id, update)
    return ApiResponse(message="Job post updated successfully", data={"jobPost": updated})


@router.delete("/{post_id}", response_model=ApiResponse)
async def delete_job_post(post_id: str, identity: CustomerOrAdmin, db: Database):
    logger.info(f"DELETE /job-posts/{post_id} | {identity.role.value}={identity.id}")
    JobPostService(db).delete(identity, post_id)
    return ApiResponse(message="Job post deleted successfully")


@router.post("/{post_id}/apply", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def apply_to_job_post(post_id: str, provider: ProviderIdentity, db: Database):
    """Apply once per post. A second application is a conflict."""
    logger.info(f"POST /job-posts/{post_id}/apply | provider={provider.id}")
    post = JobPostService(db).apply(provider, post_id)
    return ApiResponse(
        statusCode=status.HTTP_201_CREATED,
        message="Application submitted successfully",
        data={"jobPost": post},
    )


@router.put("/{post_id}/applications/{application_id}/approve", response_model=ApiResponse)
async def approve_application(post_id: str, application_id: str, customer: CustomerIdentity, db: Database):
    logger.info(f"PUT /job-posts/{post_id}/applications/{application_id}/approve | customer={customer.id}")
    post = JobPostService(db).approve_application(customer, post_id, application_id)
    return ApiResponse(message="Application approved successfully", data={"jobPost": post})


@router.put("/{post_id}/applications/{application_id}/reject", response_model=ApiResponse)
async def reject_application(post_id: str, application_id: str, customer: CustomerIdentity, db: Database):
    logger.info(f"PUT /job-posts/{post_id}/applications/{application_id}/reject | customer={customer.id}")
    post = JobPostService(db).reject_application(customer, post_id, application_id)
    return ApiResponse(message="Application rejected successfully", data={"jobPost": post})
