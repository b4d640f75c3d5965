"""Shared test fixtures and configuration."""

from __future__ import annotations

import json
import os

# The module-level engine is built at import time; keep it off PostgreSQL
os.environ.setdefault("LINKRELAY_DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")

from typing import List, Optional, Set

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from linkrelay.core.database import Base
from linkrelay.models import models  # noqa: F401
from linkrelay.schemas.schemas import OwnerCreate
from linkrelay.services.bots.bot_service import BotService
from linkrelay.services.links.link_service import LinkService
from linkrelay.services.owners.owner_service import OwnerService
from linkrelay.services.pipeline.dispatcher import DeliveryDispatcher
from linkrelay.services.pipeline.materializer import Materializer
from linkrelay.services.pipeline.pipeline_service import RetrievalPipeline
from linkrelay.services.providers.extraction_client import ExtractionClient
from linkrelay.services.providers.telegram_client import TelegramClient

EXTRACTION_URL = "https://extract.test/api/leech"
TELEGRAM_API = "https://tg.test"
MEDIA_URL = "https://cdn.test/media/video.mp4"
CHAT_ID = "-100200"


# ── Database ─────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def owner(db):
    return await OwnerService().register_owner(
        OwnerCreate(telegram_id="1001", username="alice"), db
    )


# ── External services ────────────────────────────────────────────────────

class FakeTelegramAPI:
    """In-process stand-in for the Bot API (getMe + sendDocument)."""

    def __init__(self, username: str = "relay_bot", file_id: str = "F1", message_id: int = 42):
        self.username = username
        self.file_id = file_id
        self.message_id = message_id
        self.rejected_tokens: Set[str] = set()
        self.upload_error: Optional[str] = None
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        bot_segment, method = request.url.path.strip("/").split("/")[-2:]
        token = bot_segment[len("bot"):]

        if method == "getMe":
            if token in self.rejected_tokens:
                return httpx.Response(401, json={"ok": False, "description": "Unauthorized"})
            return httpx.Response(200, json={"ok": True, "result": {"username": self.username}})

        if method == "sendDocument":
            if self.upload_error:
                return httpx.Response(400, json={"ok": False, "description": self.upload_error})
            return httpx.Response(200, json={
                "ok": True,
                "result": {"message_id": self.message_id, "document": {"file_id": self.file_id}},
            })

        return httpx.Response(404, json={"ok": False, "description": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/" + method)]


class FakeExtractionAPI:
    """Stand-in for the extraction service plus the CDN it points at."""

    def __init__(self, title: Optional[str] = "T", body: bytes = b"0123456789"):
        self.payload = {
            "success": True,
            "data": {
                "title": title,
                "thumbnail": "https://cdn.test/thumb.jpg",
                "duration": 61,
                "download_url": MEDIA_URL,
            },
        }
        self.status_code = 200
        self.body = body
        self.media_status = 200
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "extract.test":
            return httpx.Response(self.status_code, json=self.payload)
        if str(request.url) == MEDIA_URL:
            return httpx.Response(self.media_status, content=self.body)
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def extraction_bodies(self) -> List[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.host == "extract.test"]


@pytest.fixture
def fake_telegram() -> FakeTelegramAPI:
    return FakeTelegramAPI()


@pytest.fixture
def fake_extraction() -> FakeExtractionAPI:
    return FakeExtractionAPI()


# ── Services wired to the fakes ──────────────────────────────────────────

@pytest.fixture
def links() -> LinkService:
    return LinkService()


@pytest.fixture
def bots(fake_telegram) -> BotService:
    return BotService(telegram=TelegramClient(api_base=TELEGRAM_API, transport=fake_telegram.transport))


@pytest.fixture
def download_dir(tmp_path):
    return tmp_path / "downloads"


@pytest.fixture
def pipeline(session_factory, bots, links, fake_extraction, download_dir) -> RetrievalPipeline:
    return RetrievalPipeline(
        session_factory=session_factory,
        extraction=ExtractionClient(
            api_url=EXTRACTION_URL, api_key="k", transport=fake_extraction.transport,
        ),
        materializer=Materializer(download_dir=str(download_dir), transport=fake_extraction.transport),
        dispatcher=DeliveryDispatcher(telegram=bots.telegram, bots=bots, chat_id=CHAT_ID),
        links=links,
    )
