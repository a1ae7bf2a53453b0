"""
Rotas do link permanente de venue.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from onair.core.clock import utcnow
from onair.core.database import get_db
from onair.core.errors import BroadcastError, SlotNotFound, to_http_exception
from onair.core.security import get_current_user
from onair.services.session_orchestrator import SessionOrchestrator, get_orchestrator
from onair.services.slot_service import SlotService
from onair.schemas.session import SessionHandleSchema, VenueGoLiveRequest, VenueSlotsSchema

router = APIRouter(prefix="/venues", tags=["venues"])


@router.get("/{venue_slug}/slots", response_model=VenueSlotsSchema)
async def venue_slots(
    venue_slug: str,
    db: Session = Depends(get_db)
):
    """Slot atual (janela de go-live aberta ou live) e próximo slot da venue."""
    current, upcoming = SlotService.venue_slots(db, venue_slug, utcnow())
    return {"venue_slug": venue_slug, "current": current, "next": upcoming}


@router.post("/{venue_slug}/go-live", response_model=SessionHandleSchema)
async def venue_go_live(
    venue_slug: str,
    request: VenueGoLiveRequest,
    current_user: dict = Depends(get_current_user),
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Entra live no slot atual da venue com a conta autenticada."""
    now = utcnow()
    current, _ = SlotService.venue_slots(db, venue_slug, now)

    try:
        if current is None:
            raise SlotNotFound()
        handle = await orchestrator.go_live(
            db,
            current.broadcast_token,
            now,
            dj_user_id=current_user["user_id"],
            dj_username=request.dj_username or current_user.get("username"),
            record=request.record
        )
    except BroadcastError as e:
        raise to_http_exception(e)

    return SessionHandleSchema.model_validate(handle)
