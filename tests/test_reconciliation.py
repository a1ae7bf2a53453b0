"""
Testes do sweep de reconciliação.
"""
from datetime import timedelta

import pytest

from onair.core.config import settings
from onair.models.broadcast_slot import SlotStatus
from onair.models.recording import RecordingStatus
from onair.services.session_orchestrator import SessionOrchestrator
from onair.workers.reconciliation_worker import ReconciliationWorker
from tests.conftest import END, START


@pytest.fixture
def orchestrator(transport):
    return SessionOrchestrator(transport)


@pytest.mark.asyncio
async def test_scheduled_slot_past_end_is_missed(db, make_slot, orchestrator):
    slot = make_slot()

    report = await orchestrator.reconcile_all(db, END + timedelta(seconds=1))

    db.refresh(slot)
    assert slot.status == SlotStatus.MISSED
    assert report.missed == 1
    assert report.completed == 0


@pytest.mark.asyncio
async def test_slot_at_end_is_not_swept(db, make_slot, orchestrator):
    slot = make_slot()

    report = await orchestrator.reconcile_all(db, END)

    db.refresh(slot)
    assert slot.status == SlotStatus.SCHEDULED
    assert report.checked == 0


@pytest.mark.asyncio
async def test_live_slot_past_end_is_completed_and_released(db, make_slot, transport, orchestrator):
    slot = make_slot()
    handle = await orchestrator.go_live(db, slot.broadcast_token, START, dj_user_id="user-1")

    report = await orchestrator.reconcile_all(db, END + timedelta(minutes=1))

    db.refresh(slot)
    assert slot.status == SlotStatus.COMPLETED
    assert slot.live_dj_user_id is None
    assert report.completed == 1
    assert report.disconnected == 1
    assert transport.removed == [(settings.station_id, "user-1")]
    assert handle.recording.egress_id in transport.egresses_stopped
    assert slot.recordings[0].status == RecordingStatus.PROCESSING


@pytest.mark.asyncio
async def test_paused_slot_past_end_is_completed(db, make_slot, transport, orchestrator):
    slot = make_slot()
    await orchestrator.go_live(db, slot.broadcast_token, START, dj_user_id="user-1")
    await orchestrator.pause(db, START + timedelta(minutes=10), token=slot.broadcast_token)

    report = await orchestrator.reconcile_all(db, END + timedelta(minutes=1))

    db.refresh(slot)
    assert slot.status == SlotStatus.COMPLETED
    assert report.completed == 1
    assert report.disconnected == 0


@pytest.mark.asyncio
async def test_sweep_is_idempotent(db, make_slot, orchestrator):
    make_slot()
    await orchestrator.reconcile_all(db, END + timedelta(minutes=1))

    report = await orchestrator.reconcile_all(db, END + timedelta(minutes=2))

    assert report.missed == 0
    assert report.checked == 0


@pytest.mark.asyncio
async def test_long_pause_is_completed_when_limit_configured(db, make_slot, orchestrator, monkeypatch):
    slot = make_slot()
    await orchestrator.go_live(db, slot.broadcast_token, START, dj_user_id="user-1")
    await orchestrator.pause(db, START + timedelta(minutes=5), token=slot.broadcast_token)

    await orchestrator.reconcile_all(db, START + timedelta(minutes=30))
    db.refresh(slot)
    assert slot.status == SlotStatus.PAUSED

    monkeypatch.setattr(settings, "max_pause_minutes", 20)
    report = await orchestrator.reconcile_all(db, START + timedelta(minutes=30))

    db.refresh(slot)
    assert slot.status == SlotStatus.COMPLETED
    assert report.completed == 1


@pytest.mark.asyncio
async def test_sweep_follows_dj_change(db, b3b_slot, orchestrator):
    await orchestrator.go_live(db, b3b_slot.broadcast_token, START)
    dj_a, dj_b = b3b_slot.dj_slots

    report = await orchestrator.reconcile_all(db, START + timedelta(minutes=30))
    assert report.switched == 0

    report = await orchestrator.reconcile_all(db, START + timedelta(hours=1, minutes=5))

    db.refresh(b3b_slot)
    assert report.switched == 1
    assert b3b_slot.current_dj_slot_id == dj_b.id
    assert b3b_slot.live_dj_username == "djb"


@pytest.mark.asyncio
async def test_one_failing_slot_does_not_block_others(db, make_slot, orchestrator):
    broken = make_slot(start=START, end=END + timedelta(hours=3))
    await orchestrator.go_live(db, broken.broadcast_token, START, dj_user_id="user-1")
    # lineup inválido: sem dj_name nem dj_slots
    broken.dj_name = None
    db.commit()
    stale = make_slot(start=START - timedelta(hours=3), end=START - timedelta(hours=2))

    report = await orchestrator.reconcile_all(db, START + timedelta(minutes=30))

    db.refresh(stale)
    assert stale.status == SlotStatus.MISSED
    assert report.failed == 1
    assert report.failed_slot_ids == [broken.id]


@pytest.mark.asyncio
async def test_worker_run_once_uses_own_session(db, make_slot, transport):
    slot = make_slot()
    from onair.core.database import SessionLocal
    worker = ReconciliationWorker(transport, session_factory=SessionLocal, interval_seconds=5)

    report = await worker.run_once(END + timedelta(minutes=1))

    assert report.missed == 1
    assert worker.last_run_at == END + timedelta(minutes=1)
    db.refresh(slot)
    assert slot.status == SlotStatus.MISSED


def test_worker_registers_and_removes_job(transport):
    from onair.core.scheduler import SchedulerManager
    from onair.workers.reconciliation_worker import JOB_ID

    worker = ReconciliationWorker(transport, interval_seconds=5)
    worker.start()
    try:
        assert worker.running is True
        assert SchedulerManager.get_scheduler().get_job(JOB_ID) is not None
    finally:
        worker.stop()

    assert worker.running is False
    assert SchedulerManager.get_scheduler().get_job(JOB_ID) is None
