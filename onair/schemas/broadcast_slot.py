"""
Schemas Pydantic para slots de broadcast e slots de DJ.
"""
from pydantic import BaseModel, Field, validator, model_validator
from typing import Optional, Dict, List
from uuid import UUID
from datetime import datetime
from onair.models.broadcast_slot import SlotStatus, BroadcastType
from onair.schemas.recording import RecordingSchema


class DJProfileSchema(BaseModel):
    """Perfil de um co-performer B3B."""
    email: Optional[str] = None
    user_id: Optional[str] = None
    username: Optional[str] = None
    bio: Optional[str] = None
    photo_url: Optional[str] = None
    promo_text: Optional[str] = Field(None, max_length=200)
    promo_hyperlink: Optional[str] = Field(None, max_length=500)
    thank_you_message: Optional[str] = Field(None, max_length=200)
    social_links: Optional[Dict[str, str]] = None


class DJSlotSchema(BaseModel):
    """Schema de slot de DJ (resposta)."""
    id: UUID
    position: int
    dj_name: Optional[str] = None
    start_time: datetime
    end_time: datetime
    dj_email: Optional[str] = None
    dj_user_id: Optional[str] = None
    dj_username: Optional[str] = None
    dj_bio: Optional[str] = None
    dj_photo_url: Optional[str] = None
    dj_promo_text: Optional[str] = None
    dj_promo_hyperlink: Optional[str] = None
    dj_thank_you_message: Optional[str] = None
    dj_social_links: Optional[Dict[str, str]] = None
    dj_profiles: Optional[List[DJProfileSchema]] = None
    live_dj_user_id: Optional[str] = None
    live_dj_username: Optional[str] = None
    promo_text: Optional[str] = None
    promo_hyperlink: Optional[str] = None
    thank_you_message: Optional[str] = None
    
    class Config:
        from_attributes = True


class DJSlotInputSchema(BaseModel):
    """Schema para criar ou editar um slot de DJ."""
    id: Optional[UUID] = Field(None, description="ID existente (edição) ou vazio (novo)")
    dj_name: Optional[str] = Field(None, max_length=255, description="Nome exibido (pode ser TBD)")
    start_time: datetime
    end_time: datetime
    dj_email: Optional[str] = Field(None, max_length=255)
    dj_user_id: Optional[str] = None
    dj_username: Optional[str] = None
    dj_bio: Optional[str] = None
    dj_photo_url: Optional[str] = None
    dj_promo_text: Optional[str] = Field(None, max_length=200)
    dj_promo_hyperlink: Optional[str] = Field(None, max_length=500)
    dj_thank_you_message: Optional[str] = Field(None, max_length=200)
    dj_social_links: Optional[Dict[str, str]] = None
    dj_profiles: Optional[List[DJProfileSchema]] = None
    
    @model_validator(mode="after")
    def validate_interval(self):
        """O slot de DJ precisa de um intervalo não vazio."""
        if self.end_time <= self.start_time:
            raise ValueError("end_time do slot de DJ deve ser posterior a start_time")
        return self


class BroadcastSlotPublicSchema(BaseModel):
    """
    Vista pública de um slot (link de venue, grelha).
    
    Não inclui o token de broadcast nem a sua validade.
    """
    id: UUID
    station_id: str
    show_name: str
    broadcast_type: BroadcastType
    venue_slug: Optional[str] = None
    dj_name: Optional[str] = None
    dj_user_id: Optional[str] = None
    dj_email: Optional[str] = None
    dj_slots: List[DJSlotSchema] = []
    start_time: datetime
    end_time: datetime
    status: SlotStatus
    live_dj_user_id: Optional[str] = None
    live_dj_username: Optional[str] = None
    live_dj_bio: Optional[str] = None
    live_dj_photo_url: Optional[str] = None
    live_dj_promo_text: Optional[str] = None
    live_dj_promo_hyperlink: Optional[str] = None
    current_dj_slot_id: Optional[UUID] = None
    show_promo_text: Optional[str] = None
    show_promo_hyperlink: Optional[str] = None
    thank_you_message: Optional[str] = None
    went_live_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    recordings: List[RecordingSchema] = []
    
    class Config:
        from_attributes = True


class BroadcastSlotSchema(BroadcastSlotPublicSchema):
    """Schema de slot de broadcast com credencial (admin e portador do token)."""
    broadcast_token: str
    token_expires_at: datetime


class BroadcastSlotCreateSchema(BaseModel):
    """Schema para criar slot de broadcast."""
    show_name: str = Field(..., min_length=1, max_length=255, description="Título do show")
    broadcast_type: BroadcastType = Field(BroadcastType.VENUE, description="venue ou remote")
    venue_slug: Optional[str] = Field(
        None,
        max_length=100,
        pattern="^[a-z0-9-]+$",
        description="Slug da venue (apenas letras minúsculas, números e hífen)"
    )
    station_id: Optional[str] = Field(None, description="Estação (padrão: configuração)")
    start_time: datetime
    end_time: datetime
    dj_name: Optional[str] = Field(None, max_length=255)
    dj_user_id: Optional[str] = None
    dj_email: Optional[str] = Field(None, max_length=255)
    dj_slots: Optional[List[DJSlotInputSchema]] = None
    
    @validator('show_name')
    def validate_show_name(cls, v):
        """Remove espaços e rejeita nomes vazios."""
        v = v.strip()
        if not v:
            raise ValueError("show_name é obrigatório")
        return v
    
    @model_validator(mode="after")
    def validate_lineup(self):
        """Exatamente um de dj_name / dj_slots e horário coerente."""
        if self.end_time <= self.start_time:
            raise ValueError("end_time deve ser posterior a start_time")
        
        has_single = bool(self.dj_name)
        has_multi = bool(self.dj_slots)
        if has_single == has_multi:
            raise ValueError("Informe dj_name ou dj_slots (exatamente um)")
        return self


class BroadcastSlotUpdateSchema(BaseModel):
    """Schema para atualizar slot de broadcast."""
    show_name: Optional[str] = Field(None, min_length=1, max_length=255)
    dj_name: Optional[str] = Field(None, max_length=255)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    dj_slots: Optional[List[DJSlotInputSchema]] = Field(
        None,
        description="Slots existentes são editados pelo id; slots omitidos são mantidos"
    )


class SlotCreatedSchema(BaseModel):
    """Resposta da criação de slot com o link a entregar ao DJ."""
    slot: BroadcastSlotSchema
    broadcast_url: str
