"""
Schemas Pydantic para gravações.
"""
from pydantic import BaseModel
from typing import Optional
from uuid import UUID
from datetime import datetime
from onair.models.recording import RecordingStatus


class RecordingSchema(BaseModel):
    """Schema de gravação (resposta)."""
    id: UUID
    broadcast_slot_id: UUID
    egress_id: str
    status: RecordingStatus
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    url: Optional[str] = None
    
    class Config:
        from_attributes = True
