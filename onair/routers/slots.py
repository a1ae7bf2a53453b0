"""
Rotas de agendamento de slots de broadcast (painel de administração).
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
from uuid import UUID
from onair.core.clock import utcnow
from onair.core.database import get_db
from onair.core.errors import BroadcastError, to_http_exception
from onair.core.security import require_role, require_admin_or_cron
from onair.models.broadcast_slot import SlotStatus
from onair.services.session_orchestrator import SessionOrchestrator, get_orchestrator
from onair.services.slot_service import SlotService
from onair.schemas.broadcast_slot import (
    BroadcastSlotSchema, BroadcastSlotCreateSchema, BroadcastSlotUpdateSchema, SlotCreatedSchema
)
from onair.schemas.session import ReconcileReportSchema

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("", response_model=dict)
async def list_slots(
    skip: int = Query(0, ge=0, description="Número de registros a pular"),
    limit: int = Query(100, ge=1, le=500, description="Limite de registros por página"),
    station_id: Optional[str] = Query(None, description="Filtrar por estação"),
    start_from: Optional[datetime] = Query(None, description="Início mínimo"),
    start_to: Optional[datetime] = Query(None, description="Início máximo"),
    status: Optional[SlotStatus] = Query(None, description="Filtrar por status"),
    current_user: dict = Depends(require_role("admin")),
    db: Session = Depends(get_db)
):
    """Lista os slots de um intervalo de datas (grelha de programação)."""
    slots = SlotService.list_slots(
        db, station_id=station_id, start_from=start_from, start_to=start_to,
        status=status, skip=skip, limit=limit
    )
    total = SlotService.count_slots(
        db, station_id=station_id, start_from=start_from, start_to=start_to, status=status
    )

    return {
        "items": [BroadcastSlotSchema.model_validate(slot).model_dump(mode="json") for slot in slots],
        "total": total,
        "skip": skip,
        "limit": limit
    }


@router.post("", response_model=SlotCreatedSchema, status_code=status.HTTP_201_CREATED)
async def create_slot(
    slot_data: BroadcastSlotCreateSchema,
    current_user: dict = Depends(require_role("admin")),
    db: Session = Depends(get_db)
):
    """Agenda um novo slot e devolve o link de broadcast."""
    try:
        slot, url = SlotService.create_slot(
            db,
            show_name=slot_data.show_name,
            start_time=slot_data.start_time,
            end_time=slot_data.end_time,
            broadcast_type=slot_data.broadcast_type,
            dj_name=slot_data.dj_name,
            dj_user_id=slot_data.dj_user_id,
            dj_email=slot_data.dj_email,
            dj_slots=[dj.model_dump() for dj in slot_data.dj_slots or []],
            venue_slug=slot_data.venue_slug,
            station_id=slot_data.station_id,
            created_by=current_user["user_id"]
        )
    except BroadcastError as e:
        raise to_http_exception(e)

    return {"slot": slot, "broadcast_url": url}


@router.post("/reconcile", response_model=ReconcileReportSchema)
async def reconcile(
    current_user: dict = Depends(require_admin_or_cron),
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Executa uma passagem de reconciliação imediata (cron externo ou admin)."""
    report = await orchestrator.reconcile_all(db, utcnow())
    return ReconcileReportSchema.model_validate(report)


@router.get("/{slot_id}", response_model=BroadcastSlotSchema)
async def get_slot(
    slot_id: UUID,
    current_user: dict = Depends(require_role("admin")),
    db: Session = Depends(get_db)
):
    """Obtém um slot específico."""
    try:
        return SlotService.get_slot(db, slot_id)
    except BroadcastError as e:
        raise to_http_exception(e)


@router.put("/{slot_id}", response_model=BroadcastSlotSchema)
async def update_slot(
    slot_id: UUID,
    slot_data: BroadcastSlotUpdateSchema,
    current_user: dict = Depends(require_role("admin")),
    db: Session = Depends(get_db)
):
    """Atualiza um slot (horário, nomes e slots de DJ)."""
    dj_slots = None
    if slot_data.dj_slots is not None:
        dj_slots = [dj.model_dump(exclude_unset=True) for dj in slot_data.dj_slots]

    try:
        return SlotService.update_slot(
            db,
            slot_id,
            utcnow(),
            show_name=slot_data.show_name,
            dj_name=slot_data.dj_name,
            start_time=slot_data.start_time,
            end_time=slot_data.end_time,
            dj_slots=dj_slots
        )
    except BroadcastError as e:
        raise to_http_exception(e)


@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: UUID,
    current_user: dict = Depends(require_role("admin")),
    db: Session = Depends(get_db)
):
    """Remove um slot que não chegou a ir live."""
    try:
        SlotService.delete_slot(db, slot_id)
    except BroadcastError as e:
        raise to_http_exception(e)

    return None
