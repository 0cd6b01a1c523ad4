from __future__ import annotations

import asyncio

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.stockbuddy.config import IntakeLimits
from src.stockbuddy.db.db_init import init_db
from src.stockbuddy.ingest.ingest_models import MediaPayload
from src.stockbuddy.ingest.validation import IntakeValidator
from src.stockbuddy.media.lifecycle import AssetLifecycleCoordinator
from src.stockbuddy.media.media_errors import TransportError
from src.stockbuddy.media.media_models import (
    DeletionOutcome,
    DeletionStatus,
    StoredAssetDescriptor,
)
from src.stockbuddy.media.profile_picture_api import router
from src.stockbuddy.providers.providers_base import BlobTransport
from src.stockbuddy.repositories.profile_picture_repository import ProfilePictureRepository

OLD = StoredAssetDescriptor(
    url="https://res.cloudinary.com/demo/image/upload/v1/profile-pictures/old.jpg",
    public_id="profile-pictures/old",
    folder="profile-pictures",
)


class StubTransport(BlobTransport):
    def __init__(self) -> None:
        self.stored: list[int] = []
        self.removed: list[str] = []
        self.store_error: TransportError | None = None
        self.remove_error: TransportError | None = None
        self.remove_status = DeletionStatus.DELETED
        self.store_delay = 0.0

    async def store(self, payload: MediaPayload, namespace: str) -> StoredAssetDescriptor:
        await asyncio.sleep(self.store_delay)
        if self.store_error is not None:
            raise self.store_error
        self.stored.append(payload.size_bytes)
        index = len(self.stored)
        return StoredAssetDescriptor(
            url=f"https://res.cloudinary.com/demo/image/upload/v2/{namespace}/new{index}.png",
            public_id=f"{namespace}/new{index}",
            folder=namespace,
        )

    async def remove(self, public_id: str) -> DeletionOutcome:
        if self.remove_error is not None:
            raise self.remove_error
        self.removed.append(public_id)
        return DeletionOutcome(self.remove_status, public_id=public_id)


def build_app(transport: StubTransport, *, max_bytes: int = 1024) -> tuple[FastAPI, ProfilePictureRepository]:
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    repo = ProfilePictureRepository(sessionmaker(bind=engine, expire_on_commit=False))

    app = FastAPI()
    app.state.asset_coordinator = AssetLifecycleCoordinator(
        validator=IntakeValidator(IntakeLimits(max_bytes=max_bytes, chunk_size_bytes=64)),
        transport=transport,
    )
    app.state.picture_repo = repo
    app.include_router(router)
    return app, repo


def build_client(transport: StubTransport, *, max_bytes: int = 1024) -> tuple[TestClient, ProfilePictureRepository]:
    app, repo = build_app(transport, max_bytes=max_bytes)
    return TestClient(app), repo


def upload(client: TestClient, user_id: str, *, content_type: str = "image/png", data: bytes = b"png-data"):
    return client.post(
        f"/api/profile/{user_id}/picture",
        files={"image": ("profile-photo.png", data, content_type)},
    )


def test_first_upload_creates_picture() -> None:
    transport = StubTransport()
    client, repo = build_client(transport)

    response = upload(client, "user-1")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["publicId"] == "profile-pictures/new1"
    assert body["folder"] == "profile-pictures"
    assert transport.removed == []
    stored = repo.get("user-1")
    assert stored is not None and stored.url == body["profilePicture"]


def test_upload_replaces_existing_picture() -> None:
    transport = StubTransport()
    client, repo = build_client(transport)
    repo.save("user-1", OLD)

    response = upload(client, "user-1")

    assert response.status_code == 200
    assert transport.removed == ["profile-pictures/old"]
    stored = repo.get("user-1")
    assert stored is not None and stored.public_id == "profile-pictures/new1"


def test_upload_rejects_unsupported_type() -> None:
    transport = StubTransport()
    client, repo = build_client(transport)
    repo.save("user-1", OLD)

    response = upload(client, "user-1", content_type="image/gif")

    assert response.status_code == 415
    detail = response.json()["detail"]
    assert detail["success"] is False
    assert detail["failure_reason"] == "unsupported_media_type"
    assert "JPG or PNG" in detail["error"]
    assert transport.stored == [] and transport.removed == []
    assert repo.get("user-1") == OLD


def test_upload_rejects_oversize_payload() -> None:
    transport = StubTransport()
    client, _ = build_client(transport, max_bytes=16)

    response = upload(client, "user-1", data=b"\x00" * 17)

    assert response.status_code == 413
    assert response.json()["detail"]["failure_reason"] == "payload_too_large"
    assert transport.stored == []


def test_upload_transport_failure_returns_502() -> None:
    transport = StubTransport()
    transport.store_error = TransportError("down")
    client, repo = build_client(transport)

    response = upload(client, "user-1")

    assert response.status_code == 502
    assert response.json()["detail"]["failure_reason"] == "provider_error"
    assert repo.get("user-1") is None


def test_failed_replacement_clears_lost_reference() -> None:
    transport = StubTransport()
    transport.store_error = TransportError("down")
    client, repo = build_client(transport)
    repo.save("user-1", OLD)

    response = upload(client, "user-1")

    assert response.status_code == 502
    assert transport.removed == ["profile-pictures/old"]
    assert repo.get("user-1") is None


@pytest.mark.parametrize(
    ("remove_status", "remove_error"),
    [
        (DeletionStatus.PARTIAL, None),
        (DeletionStatus.NOT_FOUND, None),
        (DeletionStatus.DELETED, TransportError("delete failed", status_code=500)),
    ],
)
def test_failed_replacement_keeps_record_when_delete_unconfirmed(
    remove_status: DeletionStatus, remove_error: TransportError | None
) -> None:
    transport = StubTransport()
    transport.remove_status = remove_status
    transport.remove_error = remove_error
    transport.store_error = TransportError("down")
    client, repo = build_client(transport)
    repo.save("user-1", OLD)

    response = upload(client, "user-1")

    assert response.status_code == 502
    assert response.json()["detail"]["failure_reason"] == "provider_error"
    assert repo.get("user-1") == OLD


def test_failed_replacement_of_foreign_url_keeps_record() -> None:
    transport = StubTransport()
    transport.store_error = TransportError("down")
    client, repo = build_client(transport)
    foreign = StoredAssetDescriptor(url="https://example.com/me.jpg", public_id="me", folder="x")
    repo.save("user-1", foreign)

    response = upload(client, "user-1")

    assert response.status_code == 502
    assert transport.removed == []
    assert repo.get("user-1") == foreign


def test_replacement_survives_failed_delete() -> None:
    transport = StubTransport()
    transport.remove_error = TransportError("delete failed")
    client, repo = build_client(transport)
    repo.save("user-1", OLD)

    response = upload(client, "user-1")

    assert response.status_code == 200
    stored = repo.get("user-1")
    assert stored is not None and stored.public_id == "profile-pictures/new1"


def test_get_picture() -> None:
    client, repo = build_client(StubTransport())

    assert client.get("/api/profile/user-1/picture").status_code == 404

    repo.save("user-1", OLD)
    response = client.get("/api/profile/user-1/picture")

    assert response.status_code == 200
    assert response.json()["profilePicture"] == OLD.url


def test_delete_picture_clears_record() -> None:
    transport = StubTransport()
    client, repo = build_client(transport)
    repo.save("user-1", OLD)

    response = client.delete("/api/profile/user-1/picture")

    assert response.status_code == 200
    assert response.json() == {"success": True, "result": "deleted", "publicId": "profile-pictures/old"}
    assert repo.get("user-1") is None


def test_delete_partial_keeps_record() -> None:
    transport = StubTransport()
    transport.remove_status = DeletionStatus.PARTIAL
    client, repo = build_client(transport)
    repo.save("user-1", OLD)

    response = client.delete("/api/profile/user-1/picture")

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["result"] == "partial"
    assert repo.get("user-1") == OLD


def test_delete_not_found_keeps_record() -> None:
    transport = StubTransport()
    transport.remove_status = DeletionStatus.NOT_FOUND
    client, repo = build_client(transport)
    repo.save("user-1", OLD)

    response = client.delete("/api/profile/user-1/picture")

    assert response.status_code == 200
    assert response.json() == {"success": False, "result": "not_found", "publicId": "profile-pictures/old"}
    assert repo.get("user-1") == OLD


def test_delete_foreign_url_is_invalid_reference() -> None:
    transport = StubTransport()
    client, repo = build_client(transport)
    foreign = StoredAssetDescriptor(url="https://example.com/me.jpg", public_id="me", folder="x")
    repo.save("user-1", foreign)

    response = client.delete("/api/profile/user-1/picture")

    assert response.json()["result"] == "invalid_reference"
    assert transport.removed == []
    assert repo.get("user-1") is not None


def test_delete_transport_failure_returns_502() -> None:
    transport = StubTransport()
    transport.remove_error = TransportError("down")
    client, repo = build_client(transport)
    repo.save("user-1", OLD)

    response = client.delete("/api/profile/user-1/picture")

    assert response.status_code == 502
    assert repo.get("user-1") == OLD


def test_delete_without_picture_returns_404() -> None:
    client, _ = build_client(StubTransport())

    assert client.delete("/api/profile/user-1/picture").status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("existing", [None, OLD])
async def test_concurrent_uploads_leave_single_live_asset(existing: StoredAssetDescriptor | None) -> None:
    transport = StubTransport()
    transport.store_delay = 0.01
    app, repo = build_app(transport)
    if existing is not None:
        repo.save("user-1", existing)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        responses = await asyncio.gather(
            *(
                client.post(
                    "/api/profile/user-1/picture",
                    files={"image": ("profile-photo.png", b"png-data", "image/png")},
                )
                for _ in range(4)
            )
        )

    statuses = [response.status_code for response in responses]
    assert set(statuses) <= {200, 429}
    assert 200 in statuses
    live = {f"profile-pictures/new{index}" for index in range(1, len(transport.stored) + 1)}
    live -= set(transport.removed)
    assert len(live) == 1
    stored = repo.get("user-1")
    assert stored is not None and {stored.public_id} == live

