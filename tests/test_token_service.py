"""
Testes do token de capacidade dos slots.
"""
from datetime import timedelta

import pytest

from onair.core.errors import InvalidToken, TokenExpired
from onair.models.broadcast_slot import SlotStatus
from onair.services.token_service import ScheduleStatus, TokenService, mask_token
from tests.conftest import END, START


def test_generated_tokens_are_unique_and_url_safe():
    tokens = {TokenService.generate_token() for _ in range(50)}
    assert len(tokens) == 50
    for token in tokens:
        assert len(token) == 32
        assert "/" not in token and "+" not in token


def test_created_slot_gets_token_with_grace_expiry(make_slot):
    slot = make_slot()
    assert slot.broadcast_token
    assert slot.token_expires_at == END + timedelta(minutes=60)
    assert slot.status == SlotStatus.SCHEDULED


def test_unknown_token_is_invalid(db):
    with pytest.raises(InvalidToken):
        TokenService.validate(db, "does-not-exist", START)


def test_token_expires_after_grace(db, make_slot):
    slot = make_slot()
    with pytest.raises(TokenExpired) as exc_info:
        TokenService.validate(db, slot.broadcast_token, slot.token_expires_at + timedelta(seconds=1))
    assert exc_info.value.expired_at == slot.token_expires_at


def test_token_valid_exactly_at_expiry(db, make_slot):
    slot = make_slot()
    validation = TokenService.validate(db, slot.broadcast_token, slot.token_expires_at)
    assert validation.slot.id == slot.id


@pytest.mark.parametrize("offset, expected", [
    (timedelta(minutes=-5), ScheduleStatus.EARLY),
    (timedelta(seconds=-61), ScheduleStatus.EARLY),
    (timedelta(seconds=-30), ScheduleStatus.ON_TIME),
    (timedelta(0), ScheduleStatus.LATE),
    (timedelta(minutes=10), ScheduleStatus.LATE),
])
def test_schedule_status_for_scheduled_slot(db, make_slot, offset, expected):
    slot = make_slot()
    validation = TokenService.validate(db, slot.broadcast_token, START + offset)
    assert validation.schedule_status == expected


def test_schedule_status_on_time_once_live(make_slot):
    slot = make_slot()
    slot.status = SlotStatus.LIVE
    assert TokenService.compute_schedule_status(slot, START + timedelta(minutes=10)) == ScheduleStatus.ON_TIME


def test_schedule_status_not_applicable_when_terminal(make_slot):
    slot = make_slot()
    slot.status = SlotStatus.MISSED
    assert TokenService.compute_schedule_status(slot, START) == ScheduleStatus.NOT_APPLICABLE


def test_validate_has_no_side_effects(db, make_slot):
    slot = make_slot()
    TokenService.validate(db, slot.broadcast_token, START + timedelta(minutes=5))
    db.refresh(slot)
    assert slot.status == SlotStatus.SCHEDULED
    assert slot.updated_at is None


def test_mask_token_never_shows_full_token():
    assert mask_token("abcdefghijklmnop") == "abcdefgh..."
    assert mask_token(None) == "<vazio>"
