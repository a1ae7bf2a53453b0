"""
Fixtures partilhadas dos testes.

Base de dados SQLite em memória (StaticPool) recriada por teste e um
transporte de media falso que regista as chamadas. O tempo é sempre injetado.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["LIVEKIT_API_KEY"] = "test-api-key"
os.environ["LIVEKIT_API_SECRET"] = "test-api-secret"
os.environ["RECORDING_PUBLIC_URL"] = "https://media.example.com"

import asyncio
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from onair.core.database import Base, SessionLocal, engine, get_db
from onair.core.errors import TransportUnavailable
from onair.core.security import create_access_token
from onair.models.broadcast_slot import BroadcastType
from onair.services.slot_service import SlotService
from onair.utils.media_transport import MediaTransport, SessionRef, get_media_transport

# Show de referência: 21:00-22:00
START = datetime(2026, 3, 14, 21, 0, 0)
END = datetime(2026, 3, 14, 22, 0, 0)


class FakeMediaTransport(MediaTransport):
    """Transporte de media falso: regista chamadas e pode falhar sob pedido."""
    
    def __init__(self):
        self.admitted: List[Tuple[str, str]] = []
        self.removed: List[Tuple[str, str]] = []
        self.egresses_started: List[Tuple[str, str]] = []
        self.egresses_stopped: List[str] = []
        self.fail_admit = False
        self.fail_egress = False
        self.fail_stop = False
        self.fail_remove = False
        self.admit_delay = 0.0
        self.on_admit: Optional[Callable[[str, str], None]] = None
        self._egress_counter = 0
    
    async def admit_session(self, room: str, identity: str, name: Optional[str] = None) -> SessionRef:
        if self.admit_delay:
            await asyncio.sleep(self.admit_delay)
        if self.fail_admit:
            raise TransportUnavailable("admit_session")
        if self.on_admit is not None:
            self.on_admit(room, identity)
        self.admitted.append((room, identity))
        return SessionRef(room=room, identity=identity, token=f"join-{identity}", url="ws://media.test")
    
    async def remove_participant(self, room: str, identity: str) -> None:
        if self.fail_remove:
            raise TransportUnavailable("remove_participant")
        self.removed.append((room, identity))
    
    async def start_egress(self, room: str, filepath: str) -> str:
        if self.fail_egress:
            raise TransportUnavailable("start_egress")
        self._egress_counter += 1
        egress_id = f"EG_{self._egress_counter}"
        self.egresses_started.append((room, egress_id))
        return egress_id
    
    async def stop_egress(self, egress_id: str) -> None:
        if self.fail_stop:
            raise TransportUnavailable("stop_egress")
        self.egresses_stopped.append(egress_id)


@pytest.fixture
def db():
    """Sessão sobre uma base de dados limpa."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def transport():
    return FakeMediaTransport()


@pytest.fixture
def make_slot(db):
    """Factory de slots de broadcast (DJ único por omissão)."""
    def _make_slot(
        start: datetime = START,
        end: datetime = END,
        dj_name: Optional[str] = "DJ Nova",
        dj_user_id: Optional[str] = None,
        dj_slots: Optional[list] = None,
        broadcast_type: BroadcastType = BroadcastType.REMOTE,
        venue_slug: Optional[str] = None
    ):
        slot, _ = SlotService.create_slot(
            db,
            show_name="Late Night Session",
            start_time=start,
            end_time=end,
            broadcast_type=broadcast_type,
            dj_name=None if dj_slots else dj_name,
            dj_user_id=dj_user_id,
            dj_slots=dj_slots,
            venue_slug=venue_slug
        )
        return slot
    
    return _make_slot


@pytest.fixture
def b3b_slot(make_slot):
    """Show de venue com DJ A 21:00-22:00, intervalo vazio 22:00-22:01 e DJ B 22:01-23:00."""
    return make_slot(
        start=START,
        end=START + timedelta(hours=2),
        broadcast_type=BroadcastType.VENUE,
        venue_slug="club-one",
        dj_slots=[
            {
                "dj_name": "DJ A",
                "dj_user_id": "user-a",
                "dj_username": "dja",
                "dj_bio": "Bio A",
                "dj_promo_text": "Promo A",
                "start_time": START,
                "end_time": START + timedelta(hours=1)
            },
            {
                "dj_name": "DJ B",
                "dj_username": "djb",
                "start_time": START + timedelta(hours=1, minutes=1),
                "end_time": START + timedelta(hours=2)
            }
        ]
    )


@pytest.fixture
def client(db, transport):
    """TestClient com a base de dados e o transporte de teste (sem lifespan)."""
    from main import app
    
    def override_get_db():
        yield db
    
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_media_transport] = lambda: transport
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    token = create_access_token({"sub": "admin-1", "username": "admin", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def dj_headers():
    token = create_access_token({"sub": "user-dj", "username": "djvenue", "role": "dj"})
    return {"Authorization": f"Bearer {token}"}
