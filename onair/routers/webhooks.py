"""
Webhooks do servidor de media (eventos de egress e de participantes).

Erros de processamento são registados e respondidos com 200 para que o
servidor de media não repita o envio indefinidamente.
"""
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
from onair.core.clock import utcnow
from onair.core.config import settings
from onair.core.database import get_db
from onair.models.recording import RecordingStatus
from onair.services.recording_service import RecordingService
from onair.services.session_orchestrator import SessionOrchestrator, get_orchestrator
from onair.utils.media_transport import verify_webhook
import json
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

EGRESS_STATUS_MAP = {
    "EGRESS_ENDING": RecordingStatus.PROCESSING,
    "EGRESS_COMPLETE": RecordingStatus.READY,
    "EGRESS_FAILED": RecordingStatus.FAILED,
    "EGRESS_ABORTED": RecordingStatus.FAILED,
}


def parse_egress_info(egress: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extrai status, duração e URL pública de um egressInfo.

    A duração vem em nanossegundos no resultado do ficheiro mp4.
    """
    egress_status = EGRESS_STATUS_MAP.get(egress.get("status", ""))
    result: Dict[str, Any] = {
        "egress_id": egress.get("egressId") or egress.get("egress_id"),
        "status": egress_status,
        "duration_seconds": None,
        "url": None
    }

    file_results = egress.get("fileResults") or egress.get("file_results") or []
    mp4_file = next((f for f in file_results if (f.get("filename") or "").endswith(".mp4")), None)
    if mp4_file is not None:
        if mp4_file.get("duration"):
            result["duration_seconds"] = round(int(mp4_file["duration"]) / 1_000_000_000)
        base = settings.recording_public_url.rstrip("/")
        result["url"] = f"{base}/{mp4_file['filename']}" if base else mp4_file.get("location")

    return result


async def handle_event(db: Session, orchestrator: SessionOrchestrator, event: Dict[str, Any]) -> Optional[str]:
    """Aplica um evento do servidor de media; retorna o nome do evento tratado."""
    name = event.get("event")
    now = utcnow()

    if name in ("egress_updated", "egress_ended") and event.get("egressInfo"):
        info = parse_egress_info(event["egressInfo"])
        if info["status"] is None and name == "egress_ended" and info["url"]:
            info["status"] = RecordingStatus.READY
        if info["egress_id"] and info["status"] is not None:
            RecordingService.on_egress_status_changed(
                db,
                info["egress_id"],
                info["status"],
                now,
                duration_seconds=info["duration_seconds"],
                url=info["url"]
            )
        return name

    if name == "participant_left":
        room = (event.get("room") or {}).get("name")
        identity = (event.get("participant") or {}).get("identity")
        if room and identity:
            await orchestrator.on_participant_left(db, room, identity, now)
        return name

    return None


@router.post("/media")
async def media_webhook(
    request: Request,
    authorization: str = Header("", alias="Authorization"),
    db: Session = Depends(get_db),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Recebe eventos assinados do servidor de media."""
    body = await request.body()

    try:
        verify_webhook(body, authorization, settings.livekit_api_key, settings.livekit_api_secret)
    except ValueError as e:
        logger.warning(f"Webhook rejeitado: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Assinatura de webhook inválida"
        )

    try:
        event = json.loads(body)
        handled = await handle_event(db, orchestrator, event)
        logger.info(f"Webhook do servidor de media: {event.get('event')} (tratado: {bool(handled)})")
    except Exception as e:
        db.rollback()
        logger.error(f"Erro ao processar webhook: {e}")
        return {"received": True, "error": "Falha no processamento"}

    return {"received": True}
