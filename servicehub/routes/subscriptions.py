"""Subscription routes. Admins have full access; providers read their own records."""

from fastapi import APIRouter, Request, status

from ..auth import AdminIdentity, AdminOrProvider
from ..database import Database
from ..logging_config import get_logger
from ..models import ApiResponse
from ..subscriptions import SubscriptionCreate, SubscriptionService, SubscriptionUpdate

logger = get_logger("servicehub.routes.subscriptions")
router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.get("", response_model=ApiResponse)
async def list_subscriptions(request: Request, identity: AdminOrProvider, db: Database):
    logger.info(f"GET /subscriptions | {identity.role.value}={identity.id}")
    result = SubscriptionService(db).list_subscriptions(identity, dict(request.query_params))
    return ApiResponse(data=result.data, pagination=result.pagination)


@router.get("/{subscription_id}", response_model=ApiResponse)
async def get_subscription(subscription_id: str, identity: AdminOrProvider, db: Database):
    return ApiResponse(data={"subscription": SubscriptionService(db).get(identity, subscription_id)})


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription(subscription: SubscriptionCreate, admin: AdminIdentity, db: Database):
    logger.info(f"POST /subscriptions | admin={admin.id} | provider={subscription.provider_id}")
    created = SubscriptionService(db).create(admin, subscription)
    return ApiResponse(
        statusCode=status.HTTP_201_CREATED,
        message="Subscription created successfully",
        data={"subscription": created},
    )


@router.put("/{subscription_id}", response_model=ApiResponse)
async def update_subscription(
    subscription_id: str,
    update: SubscriptionUpdate,
    admin: AdminIdentity,
    db: Database,
):
    logger.info(f"PUT /subscriptions/{subscription_id} | admin={admin.id}")
    updated = SubscriptionService(db).update(admin, subscription_id, update)
    return ApiResponse(message="Subscription updated successfully", data={"subscription": updated})


@router.put("/{subscription_id}/cancel", response_model=ApiResponse)
async def cancel_subscription(subscription_id: str, admin: AdminIdentity, db: Database):
    logger.info(f"PUT /subscriptions/{subscription_id}/cancel | admin={admin.id}")
    cancelled = SubscriptionService(db).cancel(admin, subscription_id)
    return ApiResponse(message="Subscription cancelled successfully", data={"subscription": cancelled})


@router.delete("/{subscription_id}", response_model=ApiResponse)
async def delete_subscription(subscription_id: str, admin: AdminIdentity, db: Database):
    logger.info(f"DELETE /subscriptions/{subscription_id} | admin={admin.id}")
    SubscriptionService(db).delete(admin, subscription_id)
    return ApiResponse(message="Subscription deleted successfully")
