"""
Módulo models com os modelos SQLAlchemy.
"""
from onair.models.broadcast_slot import BroadcastSlot, DJSlot, SlotStatus, BroadcastType
from onair.models.recording import Recording, RecordingStatus

__all__ = [
    "BroadcastSlot",
    "DJSlot",
    "SlotStatus",
    "BroadcastType",
    "Recording",
    "RecordingStatus"
]
