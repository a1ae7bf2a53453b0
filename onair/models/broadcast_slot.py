"""
Modelos BroadcastSlot e DJSlot para agendamento e autorização de broadcasts.
"""
from sqlalchemy import Column, String, DateTime, Enum, Text, Integer, ForeignKey, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
import uuid
from onair.core.clock import utcnow
from onair.core.database import Base
import enum

# JSONB no PostgreSQL, JSON genérico nos restantes (SQLite nos testes)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class SlotStatus(str, enum.Enum):
    """Enum de status do slot de broadcast."""
    SCHEDULED = "scheduled"
    LIVE = "live"
    PAUSED = "paused"
    COMPLETED = "completed"
    MISSED = "missed"


class BroadcastType(str, enum.Enum):
    """Enum de tipo de broadcast."""
    VENUE = "venue"    # link permanente da venue, reutilizado entre shows
    REMOTE = "remote"  # token único por reserva


class BroadcastSlot(Base):
    """Modelo de slot de broadcast."""
    __tablename__ = "broadcast_slots"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    station_id = Column(String(100), nullable=False, index=True)
    show_name = Column(String(255), nullable=False)
    broadcast_type = Column(Enum(BroadcastType), nullable=False)
    venue_slug = Column(String(100), index=True)
    
    # DJ único (remote); exclusivo com dj_slots
    dj_name = Column(String(255))
    dj_user_id = Column(String(128))
    dj_email = Column(String(255))
    
    # Horário
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False, index=True)
    
    # Token de capacidade
    broadcast_token = Column(String(64), unique=True, nullable=False, index=True)
    token_expires_at = Column(DateTime, nullable=False)
    
    status = Column(Enum(SlotStatus), nullable=False, default=SlotStatus.SCHEDULED, index=True)
    
    # Claim live (apenas enquanto live/paused)
    live_dj_user_id = Column(String(128))
    live_dj_username = Column(String(255))
    live_dj_bio = Column(Text)
    live_dj_photo_url = Column(Text)
    live_dj_promo_text = Column(String(200))
    live_dj_promo_hyperlink = Column(String(500))
    current_dj_slot_id = Column(Uuid(as_uuid=True))
    
    # Promo do show (padrão para todos os DJs)
    show_promo_text = Column(String(200))
    show_promo_hyperlink = Column(String(500))
    thank_you_message = Column(String(200))
    
    went_live_at = Column(DateTime)
    paused_at = Column(DateTime)
    ended_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    created_by = Column(String(128))
    updated_at = Column(DateTime)
    
    # Relacionamentos
    dj_slots = relationship(
        "DJSlot",
        back_populates="broadcast_slot",
        cascade="all, delete-orphan",
        order_by="DJSlot.start_time"
    )
    recordings = relationship(
        "Recording",
        back_populates="broadcast_slot",
        cascade="all, delete-orphan",
        order_by="Recording.started_at"
    )


class DJSlot(Base):
    """Sub-intervalo de um slot de venue para um DJ (ou grupo B3B)."""
    __tablename__ = "dj_slots"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    broadcast_slot_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("broadcast_slots.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position = Column(Integer, nullable=False, default=0)
    dj_name = Column(String(255))
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    
    # Perfil pré-resolvido no agendamento (lookup por email ou conta)
    dj_email = Column(String(255))
    dj_user_id = Column(String(128))
    dj_username = Column(String(255))
    dj_bio = Column(Text)
    dj_photo_url = Column(Text)
    dj_promo_text = Column(String(200))
    dj_promo_hyperlink = Column(String(500))
    dj_thank_you_message = Column(String(200))
    dj_social_links = Column(JSONType)
    dj_profiles = Column(JSONType)  # co-performers B3B
    
    # Campos de runtime (quando o slot fica ativo)
    live_dj_user_id = Column(String(128))
    live_dj_username = Column(String(255))
    promo_text = Column(String(200))
    promo_hyperlink = Column(String(500))
    thank_you_message = Column(String(200))
    
    # Relacionamentos
    broadcast_slot = relationship("BroadcastSlot", back_populates="dj_slots")
