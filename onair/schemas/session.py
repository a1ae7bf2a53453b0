"""
Schemas Pydantic para as operações da sessão live (link de broadcast).
"""
from pydantic import BaseModel, Field, validator, model_validator
from typing import Optional
from uuid import UUID
from datetime import datetime
from onair.models.broadcast_slot import SlotStatus
from onair.schemas.broadcast_slot import BroadcastSlotSchema, BroadcastSlotPublicSchema, DJSlotSchema
from onair.schemas.recording import RecordingSchema
from onair.services.token_service import ScheduleStatus
from onair.utils.url import validate_hyperlink


class TokenRequest(BaseModel):
    """Pedido autenticado apenas pelo token de broadcast."""
    token: str = Field(..., min_length=1)


class GoLiveRequest(TokenRequest):
    """Schema para entrar live."""
    dj_user_id: Optional[str] = Field(None, description="Conta do DJ, se autenticado")
    dj_username: Optional[str] = Field(None, max_length=255)
    input_method: str = Field("system", pattern="^(system|device|rtmp)$")
    record: Optional[bool] = Field(None, description="Padrão: RECORDING_ENABLED")


class ResumeRequest(TokenRequest):
    """Schema para retomar um slot paused."""
    record: Optional[bool] = None


class PauseRequest(BaseModel):
    """Beacon de desconexão do cliente: token ou slot_id."""
    token: Optional[str] = None
    slot_id: Optional[UUID] = None

    @model_validator(mode="after")
    def validate_target(self):
        if not self.token and self.slot_id is None:
            raise ValueError("Informe token ou slot_id")
        return self


class PromoRequest(TokenRequest):
    """Schema para publicar a promo do DJ ativo."""
    promo_text: str = Field(..., min_length=1, max_length=200)
    promo_hyperlink: Optional[str] = Field(None, max_length=500)
    username: Optional[str] = None

    @validator('promo_text')
    def validate_promo_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("O texto da promo é obrigatório")
        return v

    @validator('promo_hyperlink')
    def validate_promo_hyperlink(cls, v):
        """Acrescenta https:// e rejeita protocolos que não sejam http(s)."""
        if v is None or not v.strip():
            return None
        return validate_hyperlink(v)


class ThankYouRequest(TokenRequest):
    """Schema para a mensagem de agradecimento."""
    message: str = Field(..., min_length=1)
    dj_user_id: Optional[str] = None


class SwitchDJRequest(TokenRequest):
    """Schema para passar o claim live a outro slot de DJ."""
    dj_slot_id: UUID
    dj_user_id: Optional[str] = None
    dj_username: Optional[str] = None


class DJUserRequest(TokenRequest):
    """Schema para registar a conta do DJ já live."""
    dj_user_id: str = Field(..., min_length=1)
    dj_username: Optional[str] = None


class VenueGoLiveRequest(BaseModel):
    """Go-live pelo link permanente da venue (conta autenticada)."""
    dj_username: Optional[str] = Field(None, max_length=255)
    record: Optional[bool] = None


class SessionRefSchema(BaseModel):
    """Credencial de entrada na sala de media."""
    room: str
    identity: str
    token: str
    url: str

    class Config:
        from_attributes = True


class SessionHandleSchema(BaseModel):
    """Resposta de go-live e resume."""
    slot: BroadcastSlotSchema
    session: SessionRefSchema
    identity: str
    recording: Optional[RecordingSchema] = None
    already_live: bool = False

    class Config:
        from_attributes = True


class TokenValidationSchema(BaseModel):
    """Resposta da validação de token."""
    slot: BroadcastSlotSchema
    schedule_status: ScheduleStatus
    message: str
    broadcast_url: Optional[str] = None


class DJChangeWarningSchema(BaseModel):
    level: str
    seconds_remaining: int
    next_dj_name: Optional[str] = None

    class Config:
        from_attributes = True


class SlotViewSchema(BaseModel):
    """Vista observável de um slot (polling do cliente)."""
    status: SlotStatus
    schedule_status: ScheduleStatus
    active_dj_slot: Optional[DJSlotSchema] = None
    next_dj_slot: Optional[DJSlotSchema] = None
    slot_changed: bool
    can_go_live: bool
    can_resume: bool
    message: str
    go_live_opens_at: datetime
    ends_at: datetime
    dj_change_warning: Optional[DJChangeWarningSchema] = None
    server_time: Optional[datetime] = None

    class Config:
        from_attributes = True


class VenueSlotsSchema(BaseModel):
    """Slot atual e próximo de uma venue (sem token de broadcast)."""
    venue_slug: str
    current: Optional[BroadcastSlotPublicSchema] = None
    next: Optional[BroadcastSlotPublicSchema] = None


class ReconcileReportSchema(BaseModel):
    """Resultado de uma passagem manual de reconciliação."""
    checked: int
    completed: int
    missed: int
    disconnected: int
    switched: int
    failed: int

    class Config:
        from_attributes = True
