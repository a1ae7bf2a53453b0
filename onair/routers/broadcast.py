"""
Rotas do link de broadcast (autenticadas pelo token do slot).
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from onair.core.clock import utcnow
from onair.core.database import get_db
from onair.core.errors import BroadcastError, to_http_exception
from onair.services.session_orchestrator import SessionOrchestrator, get_orchestrator
from onair.services.slot_service import SlotService
from onair.services.token_service import TokenService
from onair.schemas.broadcast_slot import BroadcastSlotSchema
from onair.schemas.session import (
    TokenRequest, GoLiveRequest, ResumeRequest, PauseRequest, PromoRequest,
    ThankYouRequest, SwitchDJRequest, DJUserRequest, SessionHandleSchema,
    TokenValidationSchema, SlotViewSchema
)

router = APIRouter(prefix="/broadcast", tags=["broadcast"])


@router.get("/validate-token", response_model=TokenValidationSchema)
async def validate_token(
    token: str = Query(..., min_length=1, description="Token de broadcast"),
    db: Session = Depends(get_db)
):
    """Valida o token e informa se o DJ está adiantado, a horas ou atrasado."""
    try:
        validation = TokenService.validate(db, token, utcnow())
    except BroadcastError as e:
        raise to_http_exception(e)

    return TokenValidationSchema(
        slot=BroadcastSlotSchema.model_validate(validation.slot),
        schedule_status=validation.schedule_status,
        message=validation.message,
        broadcast_url=SlotService.broadcast_url(validation.slot)
    )


@router.post("/go-live", response_model=SessionHandleSchema)
async def go_live(
    request: GoLiveRequest,
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Entra live: admite a sessão no servidor de media e marca o slot como live."""
    try:
        handle = await orchestrator.go_live(
            db,
            request.token,
            utcnow(),
            dj_user_id=request.dj_user_id,
            dj_username=request.dj_username,
            record=request.record
        )
    except BroadcastError as e:
        raise to_http_exception(e)

    return SessionHandleSchema.model_validate(handle)


@router.post("/resume", response_model=SessionHandleSchema)
async def resume(
    request: ResumeRequest,
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Retoma um slot paused com o mesmo token."""
    try:
        handle = await orchestrator.resume(db, request.token, utcnow(), record=request.record)
    except BroadcastError as e:
        raise to_http_exception(e)

    return SessionHandleSchema.model_validate(handle)


@router.post("/pause", response_model=BroadcastSlotSchema)
async def pause(
    request: PauseRequest,
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Beacon de desconexão do cliente (fecho do browser, perda de rede)."""
    try:
        slot = await orchestrator.pause(db, utcnow(), token=request.token, slot_id=request.slot_id)
    except BroadcastError as e:
        raise to_http_exception(e)

    return slot


@router.post("/end", response_model=BroadcastSlotSchema)
async def end_broadcast(
    request: TokenRequest,
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Termina o broadcast."""
    try:
        slot = await orchestrator.end_broadcast(db, request.token, utcnow())
    except BroadcastError as e:
        raise to_http_exception(e)

    return slot


@router.post("/promo")
async def submit_promo(
    request: PromoRequest,
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Publica a promo do DJ ativo."""
    try:
        slot = orchestrator.submit_promo(
            db, request.token, utcnow(), request.promo_text, request.promo_hyperlink
        )
    except BroadcastError as e:
        raise to_http_exception(e)

    return {
        "success": True,
        "applied": slot is not None,
        "promo_text": request.promo_text,
        "promo_hyperlink": request.promo_hyperlink
    }


@router.post("/thank-you")
async def submit_thank_you(
    request: ThankYouRequest,
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Guarda a mensagem de agradecimento do DJ ativo."""
    try:
        slot = orchestrator.submit_thank_you(db, request.token, utcnow(), request.message)
    except BroadcastError as e:
        raise to_http_exception(e)

    return {"success": True, "applied": slot is not None}


@router.post("/switch-dj", response_model=BroadcastSlotSchema)
async def switch_dj(
    request: SwitchDJRequest,
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Passa o claim live ao próximo DJ de um show B3B."""
    try:
        slot = orchestrator.switch_dj(
            db,
            request.token,
            request.dj_slot_id,
            utcnow(),
            dj_user_id=request.dj_user_id,
            dj_username=request.dj_username
        )
    except BroadcastError as e:
        raise to_http_exception(e)

    return slot


@router.post("/dj-user", response_model=BroadcastSlotSchema)
async def update_dj_user(
    request: DJUserRequest,
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Regista a conta do DJ que autenticou já com o slot live."""
    try:
        slot = orchestrator.claim_identity(
            db, request.token, utcnow(), request.dj_user_id, request.dj_username
        )
    except BroadcastError as e:
        raise to_http_exception(e)

    return slot


@router.get("/status", response_model=SlotViewSchema)
async def slot_status(
    token: str = Query(..., min_length=1),
    previous_dj_slot_id: Optional[UUID] = Query(None, description="Último slot de DJ visto pelo cliente"),
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Vista do slot para o timer do cliente (sem efeitos colaterais)."""
    now = utcnow()
    try:
        slot = TokenService.lookup(db, token)
        view = orchestrator.tick(slot, now, previous_dj_slot_id)
    except BroadcastError as e:
        raise to_http_exception(e)

    result = SlotViewSchema.model_validate(view)
    result.server_time = now
    return result
