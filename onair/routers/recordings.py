"""
Rotas de gravações dos slots de broadcast.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
from onair.core.database import get_db
from onair.core.errors import BroadcastError, to_http_exception
from onair.core.security import get_current_user
from onair.services.recording_service import RecordingService
from onair.services.slot_service import SlotService
from onair.schemas.recording import RecordingSchema

router = APIRouter(prefix="/slots", tags=["recordings"])


@router.get("/{slot_id}/recordings", response_model=List[RecordingSchema])
async def list_recordings(
    slot_id: UUID,
    current_user: dict = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Lista os segmentos de gravação de um slot."""
    try:
        SlotService.get_slot(db, slot_id)
    except BroadcastError as e:
        raise to_http_exception(e)

    return RecordingService.get_recordings(db, slot_id)
