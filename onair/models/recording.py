"""
Modelo Recording para segmentos de gravação de um slot de broadcast.
"""
from sqlalchemy import Column, String, DateTime, Enum, Text, Integer, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import uuid
from onair.core.database import Base
import enum


class RecordingStatus(str, enum.Enum):
    """Enum de status de gravação."""
    RECORDING = "recording"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class Recording(Base):
    """Modelo de gravação (um egress contínuo)."""
    __tablename__ = "recordings"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    broadcast_slot_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("broadcast_slots.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    egress_id = Column(String(128), unique=True, nullable=False, index=True)
    status = Column(Enum(RecordingStatus), nullable=False)
    started_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime)
    duration_seconds = Column(Integer)
    url = Column(Text)
    
    # Relacionamentos
    broadcast_slot = relationship("BroadcastSlot", back_populates="recordings")
