"""
Testes da máquina de estados dos slots.
"""
from datetime import timedelta

import pytest

from onair.core.errors import AlreadyLive, InvalidTransition, NotYetOpen, WindowClosed
from onair.models.broadcast_slot import BroadcastSlot, SlotStatus
from onair.services.slot_state_machine import (
    ALLOWED_TRANSITIONS,
    Claim,
    SlotStateMachine,
)
from tests.conftest import END, START

ALLOWED_EDGES = {
    (SlotStatus.SCHEDULED, SlotStatus.LIVE),
    (SlotStatus.SCHEDULED, SlotStatus.MISSED),
    (SlotStatus.LIVE, SlotStatus.PAUSED),
    (SlotStatus.LIVE, SlotStatus.COMPLETED),
    (SlotStatus.PAUSED, SlotStatus.LIVE),
    (SlotStatus.PAUSED, SlotStatus.COMPLETED),
}


def test_transition_table_matches_lifecycle():
    edges = {(current, target) for current, targets in ALLOWED_TRANSITIONS.items() for target in targets}
    assert edges == ALLOWED_EDGES


@pytest.mark.parametrize("current", list(SlotStatus))
@pytest.mark.parametrize("target", list(SlotStatus))
def test_disallowed_transitions_leave_status_unchanged(db, make_slot, current, target):
    if (current, target) in ALLOWED_EDGES:
        pytest.skip("transição permitida")
    slot = make_slot()
    db.query(BroadcastSlot).filter(BroadcastSlot.id == slot.id).update({"status": current})
    db.commit()
    db.refresh(slot)

    with pytest.raises(InvalidTransition):
        SlotStateMachine.transition(db, slot, target, START)

    db.refresh(slot)
    assert slot.status == current


def test_go_live_transition_sets_claim(db, make_slot):
    slot = make_slot()
    claim = Claim(user_id="user-1", username="nova")
    assert SlotStateMachine.transition(db, slot, SlotStatus.LIVE, START, claim)
    assert slot.status == SlotStatus.LIVE
    assert slot.went_live_at == START
    assert slot.live_dj_user_id == "user-1"
    assert slot.live_dj_username == "nova"


def test_pause_keeps_claim_and_completion_clears_it(db, make_slot):
    slot = make_slot()
    SlotStateMachine.transition(db, slot, SlotStatus.LIVE, START, Claim(user_id="user-1"))
    SlotStateMachine.transition(db, slot, SlotStatus.PAUSED, START + timedelta(minutes=10))
    assert slot.paused_at == START + timedelta(minutes=10)
    assert slot.live_dj_user_id == "user-1"

    SlotStateMachine.transition(db, slot, SlotStatus.COMPLETED, START + timedelta(minutes=20))
    assert slot.status == SlotStatus.COMPLETED
    assert slot.ended_at == START + timedelta(minutes=20)
    assert slot.live_dj_user_id is None
    assert slot.current_dj_slot_id is None


def test_conditional_write_loses_against_stale_expected_status(db, make_slot):
    slot = make_slot()
    SlotStateMachine.transition(db, slot, SlotStatus.LIVE, START, Claim(user_id="first"))

    won = SlotStateMachine.transition(
        db, slot, SlotStatus.LIVE, START, Claim(user_id="second"), expected=SlotStatus.SCHEDULED
    )
    assert won is False
    assert slot.live_dj_user_id == "first"


def test_go_live_window_boundaries(make_slot):
    slot = make_slot()
    opens_at, closes_at = SlotStateMachine.go_live_window(slot)
    assert opens_at == START - timedelta(seconds=60)
    assert closes_at == END

    assert SlotStateMachine.check_go_live(slot, opens_at, "dj") is False
    assert SlotStateMachine.check_go_live(slot, END, "dj") is False

    with pytest.raises(NotYetOpen) as exc_info:
        SlotStateMachine.check_go_live(slot, opens_at - timedelta(seconds=1), "dj")
    assert exc_info.value.opens_at == opens_at
    assert "20:59" in exc_info.value.message

    with pytest.raises(WindowClosed) as exc_info:
        SlotStateMachine.check_go_live(slot, END + timedelta(seconds=1), "dj")
    assert exc_info.value.closed_at == END


def test_check_go_live_when_already_live(db, make_slot):
    slot = make_slot()
    SlotStateMachine.transition(db, slot, SlotStatus.LIVE, START, Claim(user_id="user-1"))

    assert SlotStateMachine.check_go_live(slot, START, "user-1") is True
    with pytest.raises(AlreadyLive) as exc_info:
        SlotStateMachine.check_go_live(slot, START, "user-2")
    assert exc_info.value.claimed_by == "user-1"


def test_check_go_live_rejects_paused_slot(db, make_slot):
    slot = make_slot()
    SlotStateMachine.transition(db, slot, SlotStatus.LIVE, START, Claim(user_id="user-1"))
    SlotStateMachine.transition(db, slot, SlotStatus.PAUSED, START)

    with pytest.raises(InvalidTransition):
        SlotStateMachine.check_go_live(slot, START, "user-1")


def test_update_claim_only_while_claimed(db, make_slot):
    slot = make_slot()
    assert SlotStateMachine.update_claim(db, slot, {"live_dj_username": "x"}, START) is False
    assert slot.live_dj_username is None

    SlotStateMachine.transition(db, slot, SlotStatus.LIVE, START, Claim(user_id="user-1"))
    assert SlotStateMachine.update_claim(db, slot, {"live_dj_username": "x"}, START) is True
    assert slot.live_dj_username == "x"
