"""Property domain service.

Properties are shared inventory: every authenticated user may list, read,
create and update them. Only deletion is restricted to ADMIN.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from core.db import on_commit, on_rollback
from core.exceptions import NotFoundError
from core.logging_config import get_logger
from core.models import Client, Deal, Property, PropertyPhoto
from core.types import Page
from domain.scoping import Principal, require_admin
from services.storage import IncomingFile, PhotoStorage

LOGGER = get_logger(__name__)


class PropertyService:
    """Service for property listings and their photos."""

    def __init__(self, session: Session, principal: Principal, storage: Optional[PhotoStorage] = None) -> None:
        self.session = session
        self.principal = principal
        self.storage = storage

    def _load(self, property_id: str, *options: Any) -> Property:
        prop = (
            self.session.query(Property)
            .options(*options)
            .filter(Property.id == property_id)
            .one_or_none()
        )
        if prop is None:
            raise NotFoundError("Property", property_id)
        return prop

    def _remove_files(self, urls: List[str]) -> None:
        if self.storage is not None:
            for url in urls:
                self.storage.delete(url)

    def _check_owner(self, client_id: Optional[str]) -> None:
        if client_id and self.session.get(Client, client_id) is None:
            raise NotFoundError("Client", client_id)

    def list_properties(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        currency: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        min_rooms: Optional[int] = None,
        max_rooms: Optional[int] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Property]:
        """List properties newest first; range bounds are inclusive."""
        query = self.session.query(Property)

        if search:
            needle = search.lower()
            query = query.filter(
                or_(
                    func.lower(Property.title).contains(needle, autoescape=True),
                    func.lower(Property.address).contains(needle, autoescape=True),
                )
            )
        if status:
            query = query.filter(Property.status == status)
        if currency:
            query = query.filter(Property.currency == currency)
        if min_price is not None:
            query = query.filter(Property.price >= min_price)
        if max_price is not None:
            query = query.filter(Property.price <= max_price)
        if min_rooms is not None:
            query = query.filter(Property.rooms >= min_rooms)
        if max_rooms is not None:
            query = query.filter(Property.rooms <= max_rooms)
        if min_size is not None:
            query = query.filter(Property.size_sqm >= min_size)
        if max_size is not None:
            query = query.filter(Property.size_sqm <= max_size)

        total = query.count()
        items = (
            query.options(
                selectinload(Property.photos),
                selectinload(Property.owner),
                selectinload(Property.deals),
            )
            .order_by(Property.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return Page(items=items, total=total, page=page, limit=limit, with_total_pages=True)

    def get_property(self, property_id: str) -> Property:
        return self._load(
            property_id,
            selectinload(Property.photos),
            selectinload(Property.owner),
            selectinload(Property.deals).selectinload(Deal.client),
            selectinload(Property.deals).selectinload(Deal.agent),
            selectinload(Property.tasks),
        )

    def create_property(self, data: Dict[str, Any]) -> Property:
        self._check_owner(data.get("owner_client_id"))
        prop = Property(**data)
        self.session.add(prop)
        self.session.flush()
        LOGGER.info("Created property %s", prop.id)
        return prop

    def update_property(self, property_id: str, changes: Dict[str, Any]) -> Property:
        prop = self._load(property_id)
        if "owner_client_id" in changes:
            self._check_owner(changes["owner_client_id"])
        for key, value in changes.items():
            setattr(prop, key, value)
        self.session.flush()
        return prop

    def delete_property(self, property_id: str) -> None:
        """
        Delete a property with its photos. ADMIN only, checked before existence.

        Deals and tasks that referenced the property keep their row with the
        reference cleared.
        """
        require_admin(self.principal, "Only admins can delete properties")
        prop = self._load(property_id, selectinload(Property.photos))
        urls = [photo.url for photo in prop.photos]

        self.session.delete(prop)
        self.session.flush()
        on_commit(self.session, lambda: self._remove_files(urls))
        LOGGER.info("Deleted property %s (%d photos)", property_id, len(urls))

    def add_photos(self, property_id: str, files: List[IncomingFile]) -> List[PropertyPhoto]:
        """Validate and store a batch of photos; nothing is stored if any file is rejected."""
        prop = self._load(property_id)
        self.storage.validate(files)

        photos = []
        saved: List[str] = []
        try:
            for item in files:
                url = self.storage.save(item)
                saved.append(url)
                photo = PropertyPhoto(property_id=prop.id, url=url)
                self.session.add(photo)
                photos.append(photo)
            self.session.flush()
        except Exception:
            self._remove_files(saved)
            raise
        on_rollback(self.session, lambda: self._remove_files(saved))

        LOGGER.info("Added %d photos to property %s", len(photos), prop.id)
        return photos

    def delete_photo(self, property_id: str, photo_id: str) -> None:
        photo = self.session.get(PropertyPhoto, photo_id)
        if photo is None or photo.property_id != property_id:
            raise NotFoundError("Photo", photo_id)
        urls = [photo.url]
        self.session.delete(photo)
        self.session.flush()
        on_commit(self.session, lambda: self._remove_files(urls))


__all__ = ["PropertyService"]
