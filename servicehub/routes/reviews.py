"""Review routes."""

from fastapi import APIRouter, Request, status

from ..auth import AnyRole, CustomerOrProvider
from ..database import Database
from ..logging_config import get_logger
from ..models import ApiResponse
from ..reviews import ReviewCreate, ReviewService, ReviewUpdate

logger = get_logger("servicehub.routes.reviews")
router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.get("", response_model=ApiResponse)
async def list_reviews(request: Request, db: Database):
    result = ReviewService(db).list_reviews(dict(request.query_params))
    return ApiResponse(data=result.data, pagination=result.pagination)


@router.get("/{review_id}", response_model=ApiResponse)
async def get_review(review_id: str, db: Database):
    return ApiResponse(data={"review": ReviewService(db).get(review_id)})


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_review(review: ReviewCreate, identity: CustomerOrProvider, db: Database):
    logger.info(f"POST /reviews | {identity.role.value}={identity.id}")
    created = ReviewService(db).create(identity, review)
    return ApiResponse(
        statusCode=status.HTTP_201_CREATED,
        message="Review created successfully",
        data={"review": created},
    )


@router.put("/{review_id}", response_model=ApiResponse)
async def update_review(review_id: str, update: ReviewUpdate, identity: AnyRole, db: Database):
    logger.info(f"PUT /reviews/{review_id} | {identity.role.value}={identity.id}")
    updated = ReviewService(db).update(identity, review_id, update)
    return ApiResponse(message="Review updated successfully", data={"review": updated})


@router.delete("/{review_id}", response_model=ApiResponse)
async def delete_review(review_id: str, identity: AnyRole, db: Database):
    logger.info(f"DELETE /reviews/{review_id} | {identity.role.value}={identity.id}")
    ReviewService(db).delete(identity, review_id)
    return ApiResponse(message="Review deleted successfully")
