"""
Testes do serviço de gravações.
"""
from datetime import timedelta

import pytest

from onair.core.errors import TransportUnavailable
from onair.models.recording import Recording, RecordingStatus
from onair.services.recording_service import RecordingService
from tests.conftest import START


@pytest.fixture
def recordings(transport):
    return RecordingService(transport)


@pytest.mark.asyncio
async def test_recording_round_trip(db, make_slot, recordings):
    slot = make_slot()
    recording = await recordings.start_recording(db, slot, START)

    RecordingService.on_egress_status_changed(db, recording.egress_id, RecordingStatus.PROCESSING, START + timedelta(minutes=30))
    RecordingService.on_egress_status_changed(
        db, recording.egress_id, RecordingStatus.READY, START + timedelta(minutes=31),
        duration_seconds=1800, url="https://media.example.com/x.mp4"
    )

    rows = db.query(Recording).all()
    assert len(rows) == 1
    assert rows[0].status == RecordingStatus.READY
    assert rows[0].duration_seconds == 1800
    assert rows[0].url == "https://media.example.com/x.mp4"


@pytest.mark.asyncio
async def test_duplicate_ready_callback_is_noop(db, make_slot, recordings):
    slot = make_slot()
    recording = await recordings.start_recording(db, slot, START)
    RecordingService.on_egress_status_changed(
        db, recording.egress_id, RecordingStatus.READY, START + timedelta(minutes=31),
        duration_seconds=1800, url="https://media.example.com/x.mp4"
    )

    again = RecordingService.on_egress_status_changed(
        db, recording.egress_id, RecordingStatus.READY, START + timedelta(minutes=45),
        duration_seconds=99, url="https://media.example.com/other.mp4"
    )

    assert again.ended_at == START + timedelta(minutes=31)
    assert again.duration_seconds == 1800
    assert again.url == "https://media.example.com/x.mp4"


@pytest.mark.asyncio
async def test_terminal_recording_ignores_later_callbacks(db, make_slot, recordings):
    slot = make_slot()
    recording = await recordings.start_recording(db, slot, START)
    RecordingService.on_egress_status_changed(db, recording.egress_id, RecordingStatus.FAILED, START)

    result = RecordingService.on_egress_status_changed(db, recording.egress_id, RecordingStatus.READY, START)

    assert result.status == RecordingStatus.FAILED


@pytest.mark.asyncio
async def test_backward_callback_is_ignored(db, make_slot, recordings):
    slot = make_slot()
    recording = await recordings.start_recording(db, slot, START)
    RecordingService.on_egress_status_changed(db, recording.egress_id, RecordingStatus.PROCESSING, START)

    result = RecordingService.on_egress_status_changed(db, recording.egress_id, RecordingStatus.RECORDING, START)

    assert result.status == RecordingStatus.PROCESSING


def test_unknown_egress_is_ignored(db):
    assert RecordingService.on_egress_status_changed(db, "EG_unknown", RecordingStatus.READY, START) is None


@pytest.mark.asyncio
async def test_stop_marks_processing_and_is_idempotent(db, make_slot, transport, recordings):
    slot = make_slot()
    recording = await recordings.start_recording(db, slot, START)

    stopped = await recordings.stop_recording(db, slot, START + timedelta(minutes=10))
    again = await recordings.stop_recording(db, slot, START + timedelta(minutes=11))

    assert [r.id for r in stopped] == [recording.id]
    assert again == []
    assert transport.egresses_stopped == [recording.egress_id]
    db.refresh(recording)
    assert recording.status == RecordingStatus.PROCESSING
    assert recording.ended_at == START + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_stop_before_any_callback_then_ready(db, make_slot, transport, recordings):
    slot = make_slot()
    recording = await recordings.start_recording(db, slot, START)
    transport.fail_stop = True

    await recordings.stop_recording(db, slot, START + timedelta(minutes=10))
    RecordingService.on_egress_status_changed(db, recording.egress_id, RecordingStatus.READY, START + timedelta(minutes=12))

    db.refresh(recording)
    assert recording.status == RecordingStatus.READY
    assert recording.ended_at == START + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_start_failure_raises_transport_unavailable(db, make_slot, transport, recordings):
    slot = make_slot()
    transport.fail_egress = True

    with pytest.raises(TransportUnavailable):
        await recordings.start_recording(db, slot, START)
    assert RecordingService.get_recordings(db, slot.id) == []


@pytest.mark.asyncio
async def test_segments_are_appended(db, make_slot, recordings):
    slot = make_slot()
    await recordings.start_recording(db, slot, START)
    await recordings.stop_recording(db, slot, START + timedelta(minutes=5))
    await recordings.start_recording(db, slot, START + timedelta(minutes=7))

    segments = RecordingService.get_recordings(db, slot.id)
    assert [s.status for s in segments] == [RecordingStatus.PROCESSING, RecordingStatus.RECORDING]
