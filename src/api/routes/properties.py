"""Property inventory routes, including photo upload."""
from __future__ import annotations

from typing import Any, ClassVar, Dict, FrozenSet, List, Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from pydantic import Field
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_app_settings, get_db
from api.schemas import CamelModel
from api.serializers import photo_to_dict, property_detail, property_list_item, property_to_dict
from core.config import Settings
from core.models import Currency, PropertyStatus
from domain.properties import PropertyService
from domain.scoping import Principal
from services.storage import IncomingFile, PhotoStorage

router = APIRouter()


# =============================================================================
# Request Models
# =============================================================================


class PropertyCreate(CamelModel):
    """Request body for creating a property."""

    title: str = Field(..., min_length=2)
    address: str = Field(..., min_length=5)
    price: float = Field(..., gt=0)
    currency: Optional[Currency] = None
    description: Optional[str] = None
    status: Optional[PropertyStatus] = None
    rooms: Optional[int] = Field(None, gt=0)
    size_sqm: Optional[int] = Field(None, gt=0)
    floor: Optional[int] = None
    owner_client_id: Optional[str] = None


class PropertyUpdate(CamelModel):
    """Partial update; every field optional."""

    nullable: ClassVar[FrozenSet[str]] = frozenset(
        {"description", "rooms", "size_sqm", "floor", "owner_client_id"}
    )

    title: Optional[str] = Field(None, min_length=2)
    address: Optional[str] = Field(None, min_length=5)
    price: Optional[float] = Field(None, gt=0)
    currency: Optional[Currency] = None
    description: Optional[str] = None
    status: Optional[PropertyStatus] = None
    rooms: Optional[int] = Field(None, gt=0)
    size_sqm: Optional[int] = Field(None, gt=0)
    floor: Optional[int] = None
    owner_client_id: Optional[str] = None


def get_property_service(
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> PropertyService:
    return PropertyService(db, current_user, storage=PhotoStorage(settings))


# =============================================================================
# Routes
# =============================================================================


@router.get("")
async def list_properties(
    search: Optional[str] = Query(default=None, description="Title or address"),
    status_filter: Optional[PropertyStatus] = Query(default=None, alias="status"),
    currency: Optional[Currency] = Query(default=None),
    min_price: Optional[float] = Query(default=None, alias="minPrice"),
    max_price: Optional[float] = Query(default=None, alias="maxPrice"),
    min_rooms: Optional[int] = Query(default=None, alias="minRooms"),
    max_rooms: Optional[int] = Query(default=None, alias="maxRooms"),
    min_size: Optional[int] = Query(default=None, alias="minSize"),
    max_size: Optional[int] = Query(default=None, alias="maxSize"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    """List properties, newest first. Properties are shared by all users."""
    result = service.list_properties(
        search=search,
        status=status_filter.value if status_filter else None,
        currency=currency.value if currency else None,
        min_price=min_price,
        max_price=max_price,
        min_rooms=min_rooms,
        max_rooms=max_rooms,
        min_size=min_size,
        max_size=max_size,
        page=page,
        limit=limit,
    )
    return result.envelope([property_list_item(p) for p in result.items])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_property(
    body: PropertyCreate,
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    return property_to_dict(service.create_property(body.provided()))


@router.get("/{property_id}")
async def get_property(
    property_id: str,
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    """Property with photos, owner, deals and open tasks."""
    return property_detail(service.get_property(property_id))


@router.put("/{property_id}")
async def update_property(
    property_id: str,
    body: PropertyUpdate,
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    return property_to_dict(service.update_property(property_id, body.changes()))


@router.delete("/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_property(
    property_id: str,
    service: PropertyService = Depends(get_property_service),
) -> Response:
    """Delete a property and its photo files. Admins only."""
    service.delete_property(property_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{property_id}/photos", status_code=status.HTTP_201_CREATED)
async def upload_photos(
    property_id: str,
    photos: Optional[List[UploadFile]] = File(default=None),
    service: PropertyService = Depends(get_property_service),
) -> List[Dict[str, Any]]:
    """
    Upload up to the configured number of photos in the multipart field `photos`.

    The batch is rejected as a whole if any file has the wrong type or is too large.
    """
    storage = service.storage
    uploads = photos or []
    files = []
    for upload in uploads:
        # an over-count batch is rejected on count alone, so its bodies stay unread
        data = b"" if len(uploads) > storage.max_files else await upload.read(storage.read_limit)
        files.append(IncomingFile(filename=upload.filename or "", content_type=upload.content_type, data=data))
    return [photo_to_dict(p) for p in service.add_photos(property_id, files)]


@router.delete("/{property_id}/photos/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_photo(
    property_id: str,
    photo_id: str,
    service: PropertyService = Depends(get_property_service),
) -> Response:
    service.delete_photo(property_id, photo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
