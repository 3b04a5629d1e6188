"""Service catalog routes. Public reads, admin writes."""

from fastapi import APIRouter, Request, status

from ..auth import AdminIdentity, OptionalIdentity
from ..catalog import ServiceCatalog, ServiceCreate, ServiceUpdate
from ..database import Database
from ..logging_config import get_logger
from ..models import ApiResponse

logger = get_logger("servicehub.routes.services")
router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=ApiResponse)
async def list_services(request: Request, identity: OptionalIdentity, db: Database):
    """Active services; an authenticated admin also sees inactive ones."""
    result = ServiceCatalog(db).list_services(identity, dict(request.query_params))
    return ApiResponse(data=result.data, pagination=result.pagination)


@router.get("/categories", response_model=ApiResponse)
async def list_categories(db: Database):
    return ApiResponse(data={"categories": ServiceCatalog(db).categories()})


@router.get("/{service_id}/providers", response_model=ApiResponse)
async def list_service_providers(service_id: str, request: Request, identity: OptionalIdentity, db: Database):
    """Approved providers whose skills match the service name."""
    service, result = ServiceCatalog(db).providers_for_service(identity, service_id, dict(request.query_params))
    return ApiResponse(data={"service": service, "providers": result.data}, pagination=result.pagination)


@router.get("/{service_id}", response_model=ApiResponse)
async def get_service(service_id: str, identity: OptionalIdentity, db: Database):
    return ApiResponse(data={"service": ServiceCatalog(db).get(identity, service_id)})


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_service(service: ServiceCreate, admin: AdminIdentity, db: Database):
    logger.info(f"POST /services | admin={admin.id} | name={service.name}")
    created = ServiceCatalog(db).create(admin, service)
    return ApiResponse(
        statusCode=status.HTTP_201_CREATED,
        message="Service created successfully",
        data={"service": created},
    )


@router.put("/{service_id}", response_model=ApiResponse)
async def update_service(service_id: str, update: ServiceUpdate, admin: AdminIdentity, db: Database):
    logger.info(f"PUT /services/{service_id} | admin={admin.id}")
    updated = ServiceCatalog(db).update(admin, service_id, update)
    return ApiResponse(message="Service updated successfully", data={"service": updated})


@router.delete("/{service_id}", response_model=ApiResponse)
async def delete_service(service_id: str, admin: AdminIdentity, db: Database):
    logger.info(f"DELETE /services/{service_id} | admin={admin.id}")
    ServiceCatalog(db).delete(admin, service_id)
    return ApiResponse(message="Service deleted successfully")
