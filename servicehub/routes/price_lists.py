"""Price list routes. Public reads, admin writes."""

from fastapi import APIRouter, Request, status

from ..auth import AdminIdentity, OptionalIdentity
from ..catalog import PriceListCatalog, PriceListCreate, PriceListUpdate
from ..database import Database
from ..logging_config import get_logger
from ..models import ApiResponse

logger = get_logger("servicehub.routes.price_lists")
router = APIRouter(prefix="/price-lists", tags=["price-lists"])


@router.get("", response_model=ApiResponse)
async def list_price_lists(request: Request, identity: OptionalIdentity, db: Database):
    result = PriceListCatalog(db).list_price_lists(identity, dict(request.query_params))
    return ApiResponse(data=result.data, pagination=result.pagination)


@router.get("/service/{service_id}", response_model=ApiResponse)
async def get_price_lists_for_service(service_id: str, db: Database):
    return ApiResponse(data=PriceListCatalog(db).for_service(service_id))


@router.get("/{price_list_id}", response_model=ApiResponse)
async def get_price_list(price_list_id: str, identity: OptionalIdentity, db: Database):
    return ApiResponse(data={"priceList": PriceListCatalog(db).get(identity, price_list_id)})


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_price_list(price_list: PriceListCreate, admin: AdminIdentity, db: Database):
    logger.info(f"POST /price-lists | admin={admin.id} | service={price_list.service_id}")
    created = PriceListCatalog(db).create(admin, price_list)
    return ApiResponse(
        statusCode=status.HTTP_201_CREATED,
        message="Price list created successfully",
        data={"priceList": created},
    )


@router.put("/{price_list_id}", response_model=ApiResponse)
async def update_price_list(price_list_id: str, update: PriceListUpdate, admin: AdminIdentity, db: Database):
    logger.info(f"PUT /price-lists/{price_list_id} | admin={admin.id}")
    updated = PriceListCatalog(db).update(admin, price_list_id, update)
    return ApiResponse(message="Price list updated successfully", data={"priceList": updated})


@router.delete("/{price_list_id}", response_model=ApiResponse)
async def delete_price_list(price_list_id: str, admin: AdminIdentity, db: Database):
    logger.info(f"DELETE /price-lists/{price_list_id} | admin={admin.id}")
    PriceListCatalog(db).delete(admin, price_list_id)
    return ApiResponse(message="Price list deleted successfully")
