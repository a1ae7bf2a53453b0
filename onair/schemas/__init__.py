"""
Módulo schemas com os schemas Pydantic para validação de dados.
"""
from onair.schemas.recording import RecordingSchema
from onair.schemas.broadcast_slot import (
    BroadcastSlotSchema, BroadcastSlotPublicSchema, BroadcastSlotCreateSchema, BroadcastSlotUpdateSchema,
    DJSlotSchema, DJSlotInputSchema, DJProfileSchema, SlotCreatedSchema
)
from onair.schemas.session import (
    TokenRequest, GoLiveRequest, ResumeRequest, PauseRequest, PromoRequest,
    ThankYouRequest, SwitchDJRequest, DJUserRequest, VenueGoLiveRequest,
    SessionHandleSchema, TokenValidationSchema, SlotViewSchema,
    VenueSlotsSchema, ReconcileReportSchema
)

__all__ = [
    "RecordingSchema",
    "BroadcastSlotSchema",
    "BroadcastSlotPublicSchema",
    "BroadcastSlotCreateSchema",
    "BroadcastSlotUpdateSchema",
    "DJSlotSchema",
    "DJSlotInputSchema",
    "DJProfileSchema",
    "SlotCreatedSchema",
    "TokenRequest",
    "GoLiveRequest",
    "ResumeRequest",
    "PauseRequest",
    "PromoRequest",
    "ThankYouRequest",
    "SwitchDJRequest",
    "DJUserRequest",
    "VenueGoLiveRequest",
    "SessionHandleSchema",
    "TokenValidationSchema",
    "SlotViewSchema",
    "VenueSlotsSchema",
    "ReconcileReportSchema"
]
