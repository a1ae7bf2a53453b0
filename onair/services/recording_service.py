"""
Serviço de gravações dos slots de broadcast.

Cada Recording corresponde a um egress contínuo do servidor de media. A
gravação é best-effort: falhar a gravação nunca bloqueia nem reverte o
estado do slot. Os estados terminais (ready/failed) chegam apenas pelo
callback do transporte.
"""
from sqlalchemy.orm import Session
from onair.core.errors import TransportUnavailable
from onair.models.broadcast_slot import BroadcastSlot
from onair.models.recording import Recording, RecordingStatus
from onair.utils.media_transport import MediaTransport, bounded
from uuid import UUID
from typing import Optional, List
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

# Ordem no reticulado de estados; ready e failed são terminais
STATUS_RANK = {
    RecordingStatus.RECORDING: 0,
    RecordingStatus.PROCESSING: 1,
    RecordingStatus.READY: 2,
    RecordingStatus.FAILED: 2,
}

TERMINAL_STATUSES = (RecordingStatus.READY, RecordingStatus.FAILED)


class RecordingService:
    """Serviço para gerenciar gravações de um slot."""
    
    def __init__(self, transport: MediaTransport):
        self.transport = transport
    
    @staticmethod
    def get_by_egress_id(db: Session, egress_id: str) -> Optional[Recording]:
        """Obtém uma gravação pelo egress_id."""
        return db.query(Recording).filter(Recording.egress_id == egress_id).first()
    
    @staticmethod
    def get_recordings(db: Session, slot_id: UUID) -> List[Recording]:
        """Lista as gravações de um slot por ordem de início."""
        return (
            db.query(Recording)
            .filter(Recording.broadcast_slot_id == slot_id)
            .order_by(Recording.started_at)
            .all()
        )
    
    @staticmethod
    def active_recordings(db: Session, slot_id: UUID) -> List[Recording]:
        """Gravações ainda em captura."""
        return (
            db.query(Recording)
            .filter(
                Recording.broadcast_slot_id == slot_id,
                Recording.status == RecordingStatus.RECORDING
            )
            .all()
        )
    
    async def start_recording(self, db: Session, slot: BroadcastSlot, now: datetime) -> Recording:
        """
        Inicia um egress para a sala do slot e acrescenta uma Recording.
        
        Raises:
            TransportUnavailable: Se o pedido de egress falhar
        """
        filepath = f"recordings/{slot.id}/{now.strftime('%Y%m%d-%H%M%S')}.mp4"
        egress_id = await bounded(
            self.transport.start_egress(slot.station_id, filepath),
            "start_egress"
        )
        
        recording = Recording(
            broadcast_slot_id=slot.id,
            egress_id=egress_id,
            status=RecordingStatus.RECORDING,
            started_at=now
        )
        db.add(recording)
        db.commit()
        db.refresh(recording)
        
        logger.info(f"Gravação iniciada para slot {slot.id} (egress {egress_id})")
        return recording
    
    async def stop_recording(self, db: Session, slot: BroadcastSlot, now: datetime) -> List[Recording]:
        """
        Para todas as gravações ativas do slot.
        
        A Recording passa a processing de imediato, mesmo que o pedido ao
        transporte falhe; chamadas repetidas não fazem nada.
        """
        stopped = []
        for recording in RecordingService.active_recordings(db, slot.id):
            try:
                await bounded(self.transport.stop_egress(recording.egress_id), "stop_egress")
            except TransportUnavailable:
                logger.warning(f"Falha ao parar egress {recording.egress_id}; marcado como processing")
            
            recording.status = RecordingStatus.PROCESSING
            recording.ended_at = now
            stopped.append(recording)
        
        if stopped:
            db.commit()
            logger.info(f"{len(stopped)} gravação(ões) parada(s) para slot {slot.id}")
        return stopped
    
    @staticmethod
    def on_egress_status_changed(
        db: Session,
        egress_id: str,
        status: RecordingStatus,
        now: datetime,
        duration_seconds: Optional[int] = None,
        url: Optional[str] = None
    ) -> Optional[Recording]:
        """
        Aplica um callback de estado do egress à Recording correspondente.
        
        egress_id desconhecido é registado e ignorado. Callbacks duplicados,
        atrasados ou que recuam no reticulado não alteram nada.
        """
        recording = RecordingService.get_by_egress_id(db, egress_id)
        if recording is None:
            logger.warning(f"Callback para egress desconhecido ignorado: {egress_id}")
            return None
        
        current = recording.status
        if current in TERMINAL_STATUSES:
            if status != current:
                logger.warning(
                    f"Egress {egress_id} já terminado ({current.value}); "
                    f"callback {status.value} ignorado"
                )
            return recording
        
        if status == current or STATUS_RANK[status] < STATUS_RANK[current]:
            return recording
        
        recording.status = status
        if recording.ended_at is None:
            recording.ended_at = now
        if duration_seconds is not None:
            recording.duration_seconds = duration_seconds
        if url and status == RecordingStatus.READY:
            recording.url = url
        
        db.commit()
        db.refresh(recording)
        
        logger.info(f"Egress {egress_id}: {current.value} -> {status.value}")
        return recording
