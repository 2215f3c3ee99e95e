"""Tests for property inventory and photo uploads."""
from __future__ import annotations

import asyncio
import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from api.routes.properties import upload_photos
from core.db import Base, build_session_factory
from core.exceptions import UploadError
from core.models import Property, PropertyPhoto
from domain.properties import PropertyService
from domain.scoping import Principal
from services.storage import IncomingFile, PhotoStorage

from conftest import make_deal, make_property

JPEG = b"\xff\xd8\xff\xe0" + b"0" * 64


def _stored_path(settings, url):
    return settings.upload_path / os.path.basename(url)


# ---------------------------------------------------------------------------
# Unit Tests: Photo Storage
# ---------------------------------------------------------------------------


class TestPhotoStorage:
    """Tests for upload validation and file handling."""

    @pytest.fixture
    def storage(self, settings):
        return PhotoStorage(settings)

    def test_accepts_each_image_type(self, storage):
        files = [
            IncomingFile("a.jpg", "image/jpeg", JPEG),
            IncomingFile("b.JPEG", "image/jpeg", JPEG),
            IncomingFile("c.png", "image/png", JPEG),
            IncomingFile("d.gif", "image/gif", JPEG),
            IncomingFile("e.webp", "image/webp", JPEG),
        ]
        storage.validate(files)

    def test_rejects_empty_batch(self, storage):
        with pytest.raises(UploadError, match="No files"):
            storage.validate([])

    def test_rejects_wrong_extension(self, storage):
        with pytest.raises(UploadError, match="Only image files"):
            storage.validate([IncomingFile("notes.pdf", "image/jpeg", JPEG)])

    def test_rejects_wrong_mimetype(self, storage):
        with pytest.raises(UploadError):
            storage.validate([IncomingFile("photo.jpg", "application/octet-stream", JPEG)])

    def test_rejects_too_many(self, storage):
        files = [IncomingFile(f"{i}.jpg", "image/jpeg", JPEG) for i in range(11)]
        with pytest.raises(UploadError, match="Too many files"):
            storage.validate(files)

    def test_rejects_oversize(self, settings):
        storage = PhotoStorage(settings.model_copy(update={"max_file_size": 10}))
        with pytest.raises(UploadError, match="File too large"):
            storage.validate([IncomingFile("big.jpg", "image/jpeg", b"x" * 11)])

    def test_save_and_delete(self, storage, settings):
        url = storage.save(IncomingFile("photo.PNG", "image/png", JPEG))
        assert url.startswith("/uploads/")
        assert url.endswith(".png")
        path = _stored_path(settings, url)
        assert path.read_bytes() == JPEG

        storage.delete(url)
        assert not path.exists()
        # already gone
        storage.delete(url)


# ---------------------------------------------------------------------------
# Integration Tests: CRUD
# ---------------------------------------------------------------------------


class TestPropertyCrud:
    """Tests for /api/properties."""

    def test_any_agent_can_create_and_edit(self, client, agent_headers, other_agent_headers):
        response = client.post(
            "/api/properties",
            json={"title": "Penthouse", "address": "Rothschild Blvd 10", "price": 9500000, "rooms": 5},
            headers=agent_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["currency"] == "ILS"
        assert data["status"] == "ACTIVE"
        assert data["price"] == 9500000
        assert data["photos"] == []

        response = client.put(
            f"/api/properties/{data['id']}", json={"status": "UNDER_OFFER"}, headers=other_agent_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "UNDER_OFFER"
        assert response.json()["rooms"] == 5

    def test_price_must_be_positive(self, client, agent_headers):
        response = client.post(
            "/api/properties",
            json={"title": "Free flat", "address": "Nowhere St 1", "price": 0},
            headers=agent_headers,
        )
        assert response.status_code == 400

    def test_unknown_owner(self, client, agent_headers):
        response = client.post(
            "/api/properties",
            json={"title": "Flat", "address": "Herzl St 5", "price": 100, "ownerClientId": "missing"},
            headers=agent_headers,
        )
        assert response.status_code == 404

    def test_owner_can_be_cleared(self, client, agent_headers, agent_client, db_session):
        prop = make_property(db_session, owner_client_id=agent_client.id)
        data = client.get(f"/api/properties/{prop.id}", headers=agent_headers).json()
        assert data["owner"]["fullName"] == "Moshe Katz"

        data = client.put(f"/api/properties/{prop.id}", json={"ownerClientId": None}, headers=agent_headers).json()
        assert data["ownerClientId"] is None

    def test_list_filters(self, client, agent_headers, db_session):
        make_property(db_session, title="Small", price=900000, rooms=2, size_sqm=50)
        make_property(db_session, title="Medium", price=2000000, rooms=3, size_sqm=80)
        make_property(db_session, title="Large", price=5000000, rooms=5, size_sqm=150, currency="USD")

        def titles(**params):
            data = client.get("/api/properties", params=params, headers=agent_headers).json()
            return sorted(item["title"] for item in data["data"])

        assert titles(minPrice=2000000) == ["Large", "Medium"]
        assert titles(maxPrice=2000000) == ["Medium", "Small"]
        assert titles(minRooms=3, maxRooms=4) == ["Medium"]
        assert titles(minSize=100) == ["Large"]
        assert titles(currency="USD") == ["Large"]
        assert titles(search="medi") == ["Medium"]

    def test_search_treats_wildcards_literally(self, client, agent_headers, db_session):
        make_property(db_session, title="Penthouse 100% renovated")
        make_property(db_session, title="Garden flat")

        def titles(term):
            data = client.get("/api/properties", params={"search": term}, headers=agent_headers).json()
            return [item["title"] for item in data["data"]]

        assert titles("100%") == ["Penthouse 100% renovated"]
        assert titles("den_f") == []
        assert titles("%flat") == []

    def test_list_counts_deals(self, client, agent_headers, agent_user, agent_client, db_session):
        prop = make_property(db_session)
        make_deal(db_session, agent_client, agent_user, property_id=prop.id)

        data = client.get("/api/properties", headers=agent_headers).json()
        assert data["total"] == 1
        assert data["totalPages"] == 1
        assert data["data"][0]["_count"] == {"deals": 1}

    def test_detail_lists_deals(self, client, agent_headers, agent_user, agent_client, db_session):
        prop = make_property(db_session)
        make_deal(db_session, agent_client, agent_user, property_id=prop.id)

        data = client.get(f"/api/properties/{prop.id}", headers=agent_headers).json()
        assert data["deals"][0]["client"]["fullName"] == "Moshe Katz"

    def test_not_found(self, client, agent_headers):
        assert client.get("/api/properties/missing", headers=agent_headers).status_code == 404


class TestDeleteProperty:
    """Tests for DELETE /api/properties/{id}."""

    def test_agent_cannot_delete(self, client, agent_headers, db_session):
        prop = make_property(db_session)
        assert client.delete(f"/api/properties/{prop.id}", headers=agent_headers).status_code == 403

    def test_agent_gets_403_before_404(self, client, agent_headers):
        assert client.delete("/api/properties/missing", headers=agent_headers).status_code == 403

    def test_admin_delete_keeps_deal(self, client, admin_headers, agent_user, agent_client, db_session):
        prop = make_property(db_session)
        deal = make_deal(db_session, agent_client, agent_user, property_id=prop.id)

        assert client.delete(f"/api/properties/{prop.id}", headers=admin_headers).status_code == 204
        data = client.get(f"/api/deals/{deal.id}", headers=admin_headers).json()
        assert data["propertyId"] is None

    def test_admin_delete_missing(self, client, admin_headers):
        assert client.delete("/api/properties/missing", headers=admin_headers).status_code == 404


# ---------------------------------------------------------------------------
# Integration Tests: Photos
# ---------------------------------------------------------------------------


class TestPropertyPhotos:
    """Tests for /api/properties/{id}/photos."""

    @pytest.fixture
    def prop(self, db_session):
        return make_property(db_session)

    def _upload(self, client, headers, property_id, files):
        return client.post(
            f"/api/properties/{property_id}/photos",
            files=[("photos", item) for item in files],
            headers=headers,
        )

    def test_upload_stores_files(self, client, agent_headers, prop, settings):
        response = self._upload(
            client,
            agent_headers,
            prop.id,
            [("front.jpg", JPEG, "image/jpeg"), ("plan.png", JPEG, "image/png")],
        )
        assert response.status_code == 201
        photos = response.json()
        assert len(photos) == 2
        for photo in photos:
            assert photo["propertyId"] == prop.id
            assert _stored_path(settings, photo["url"]).exists()

        served = client.get(photos[0]["url"])
        assert served.status_code == 200
        assert served.content == JPEG

        detail = client.get(f"/api/properties/{prop.id}", headers=agent_headers).json()
        assert len(detail["photos"]) == 2

    def test_upload_without_files(self, client, agent_headers, prop):
        response = client.post(f"/api/properties/{prop.id}/photos", headers=agent_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "No files uploaded"

    def test_upload_wrong_type(self, client, agent_headers, prop, settings):
        response = self._upload(
            client,
            agent_headers,
            prop.id,
            [("front.jpg", JPEG, "image/jpeg"), ("contract.pdf", b"%PDF-1.4", "application/pdf")],
        )
        assert response.status_code == 400
        assert response.json()["error"] == "upload_error"
        # nothing from the rejected batch is kept
        assert not settings.upload_path.exists() or list(settings.upload_path.iterdir()) == []

    def test_upload_too_many(self, client, agent_headers, prop):
        files = [(f"{i}.jpg", JPEG, "image/jpeg") for i in range(11)]
        response = self._upload(client, agent_headers, prop.id, files)
        assert response.status_code == 400

    def test_upload_oversize(self, client, agent_headers, prop, settings):
        big = b"0" * (settings.max_file_size + 1)
        response = self._upload(client, agent_headers, prop.id, [("big.jpg", big, "image/jpeg")])
        assert response.status_code == 400
        assert "too large" in response.json()["message"]

    def test_upload_to_missing_property(self, client, agent_headers):
        response = self._upload(client, agent_headers, "missing", [("front.jpg", JPEG, "image/jpeg")])
        assert response.status_code == 404

    def test_delete_photo(self, client, agent_headers, prop, settings):
        photo = self._upload(client, agent_headers, prop.id, [("front.jpg", JPEG, "image/jpeg")]).json()[0]
        path = _stored_path(settings, photo["url"])

        response = client.delete(f"/api/properties/{prop.id}/photos/{photo['id']}", headers=agent_headers)
        assert response.status_code == 204
        assert not path.exists()

    def test_delete_photo_of_other_property(self, client, agent_headers, prop, db_session):
        other = make_property(db_session, title="Other flat")
        photo = self._upload(client, agent_headers, prop.id, [("front.jpg", JPEG, "image/jpeg")]).json()[0]

        response = client.delete(f"/api/properties/{other.id}/photos/{photo['id']}", headers=agent_headers)
        assert response.status_code == 404

    def test_property_delete_removes_files(self, client, admin_headers, agent_headers, prop, settings):
        photos = self._upload(
            client, agent_headers, prop.id, [("a.jpg", JPEG, "image/jpeg"), ("b.jpg", JPEG, "image/jpeg")]
        ).json()
        paths = [_stored_path(settings, photo["url"]) for photo in photos]
        assert all(path.exists() for path in paths)

        assert client.delete(f"/api/properties/{prop.id}", headers=admin_headers).status_code == 204
        assert not any(path.exists() for path in paths)


# ---------------------------------------------------------------------------
# Unit Tests: Photo Files and Transactions
# ---------------------------------------------------------------------------


class FailingStorage(PhotoStorage):
    """Storage whose second write fails."""

    def __init__(self, settings):
        super().__init__(settings)
        self.saved = []

    def save(self, item):
        if self.saved:
            raise OSError("disk full")
        url = super().save(item)
        self.saved.append(url)
        return url


class TestPhotoFilesFollowTransaction:
    """Photo files are only removed or kept once the transaction outcome is known."""

    @pytest.fixture
    def session(self):
        engine = create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(bind=engine)
        session = build_session_factory(engine)()
        yield session
        session.close()
        engine.dispose()

    @pytest.fixture
    def service(self, session, settings):
        admin = Principal(user_id="admin-1", email="admin@test.com", role="ADMIN")
        return PropertyService(session, admin, storage=PhotoStorage(settings))

    @pytest.fixture
    def prop(self, session):
        prop = Property(title="Garden flat", address="Herzl St 10, Haifa", price=1_800_000)
        session.add(prop)
        session.commit()
        return prop

    def _jpegs(self, count):
        return [IncomingFile(f"{i}.jpg", "image/jpeg", JPEG) for i in range(count)]

    def test_rollback_removes_saved_files(self, session, service, prop, settings):
        photos = service.add_photos(prop.id, self._jpegs(2))
        paths = [_stored_path(settings, photo.url) for photo in photos]
        assert all(path.exists() for path in paths)

        session.rollback()
        assert not any(path.exists() for path in paths)
        assert session.query(PropertyPhoto).count() == 0

    def test_commit_keeps_saved_files(self, session, service, prop, settings):
        photos = service.add_photos(prop.id, self._jpegs(1))
        path = _stored_path(settings, photos[0].url)
        session.commit()

        # a later rollback belongs to another transaction
        session.rollback()
        assert path.exists()

    def test_failed_write_removes_earlier_files(self, session, prop, settings):
        storage = FailingStorage(settings)
        admin = Principal(user_id="admin-1", email="admin@test.com", role="ADMIN")
        service = PropertyService(session, admin, storage=storage)

        with pytest.raises(OSError):
            service.add_photos(prop.id, self._jpegs(2))
        assert len(storage.saved) == 1
        assert not _stored_path(settings, storage.saved[0]).exists()

    def test_photo_file_kept_until_commit(self, session, service, prop, settings):
        photo = service.add_photos(prop.id, self._jpegs(1))[0]
        session.commit()
        path = _stored_path(settings, photo.url)

        service.delete_photo(prop.id, photo.id)
        assert path.exists()
        session.rollback()
        assert path.exists()
        assert session.get(PropertyPhoto, photo.id) is not None

        service.delete_photo(prop.id, photo.id)
        session.commit()
        assert not path.exists()

    def test_property_files_removed_on_commit(self, session, service, prop, settings):
        photos = service.add_photos(prop.id, self._jpegs(2))
        session.commit()
        paths = [_stored_path(settings, photo.url) for photo in photos]

        service.delete_property(prop.id)
        assert all(path.exists() for path in paths)
        session.commit()
        assert not any(path.exists() for path in paths)


# ---------------------------------------------------------------------------
# Unit Tests: Upload Reads
# ---------------------------------------------------------------------------


class RecordingUpload:
    """Stands in for UploadFile and records how much was asked for."""

    def __init__(self, filename, data, content_type="image/jpeg"):
        self.filename = filename
        self.content_type = content_type
        self.data = data
        self.reads = []

    async def read(self, size=-1):
        self.reads.append(size)
        return self.data if size < 0 else self.data[:size]


class RecordingService:
    def __init__(self, storage):
        self.storage = storage
        self.files = None

    def add_photos(self, property_id, files):
        self.files = files
        return []


class TestUploadReads:
    """The upload route never reads more than the size cap plus one byte."""

    @pytest.fixture
    def service(self, settings):
        return RecordingService(PhotoStorage(settings.model_copy(update={"max_file_size": 10})))

    def test_reads_are_bounded(self, service):
        uploads = [RecordingUpload("big.jpg", b"x" * 1000), RecordingUpload("small.jpg", b"y" * 5)]
        asyncio.run(upload_photos("prop-1", photos=uploads, service=service))

        assert [upload.reads for upload in uploads] == [[11], [11]]
        assert [len(item.data) for item in service.files] == [11, 5]
        with pytest.raises(UploadError, match="File too large"):
            service.storage.validate(service.files)

    def test_over_count_batch_is_not_read(self, service):
        uploads = [RecordingUpload(f"{i}.jpg", JPEG) for i in range(11)]
        asyncio.run(upload_photos("prop-1", photos=uploads, service=service))

        assert all(upload.reads == [] for upload in uploads)
        assert len(service.files) == 11
