"""
Módulo services com a lógica de negócio dos slots e sessões live.
"""
from onair.services.token_service import TokenService, ScheduleStatus, TokenValidation
from onair.services.dj_slot_resolver import DJSlotResolver, SingleDJ, MultiDJ, lineup_of
from onair.services.recording_service import RecordingService
from onair.services.slot_state_machine import SlotStateMachine, Claim, ALLOWED_TRANSITIONS
from onair.services.session_orchestrator import (
    SessionOrchestrator,
    SessionHandle,
    SlotView,
    ReconcileReport
)
from onair.services.slot_service import SlotService

__all__ = [
    "TokenService",
    "ScheduleStatus",
    "TokenValidation",
    "DJSlotResolver",
    "SingleDJ",
    "MultiDJ",
    "lineup_of",
    "RecordingService",
    "SlotStateMachine",
    "Claim",
    "ALLOWED_TRANSITIONS",
    "SessionOrchestrator",
    "SessionHandle",
    "SlotView",
    "ReconcileReport",
    "SlotService"
]
