"""
Serviço de tokens de capacidade dos slots de broadcast.

O token é uma string opaca guardada no próprio slot; a expiração é o único
mecanismo de revogação. A validação não tem efeitos colaterais.
"""
from sqlalchemy.orm import Session
from onair.core.config import settings
from onair.core.errors import InvalidToken, TokenExpired
from onair.models.broadcast_slot import BroadcastSlot, SlotStatus
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import enum
import secrets
import logging

logger = logging.getLogger(__name__)


class ScheduleStatus(str, enum.Enum):
    """Posição do instante atual face ao horário do slot (calculado, não gravado)."""
    EARLY = "early"
    ON_TIME = "on_time"
    LATE = "late"
    NOT_APPLICABLE = "n/a"


@dataclass
class TokenValidation:
    """Resultado de uma validação de token bem-sucedida."""
    slot: BroadcastSlot
    schedule_status: ScheduleStatus
    message: str


def mask_token(token: Optional[str]) -> str:
    """Versão segura do token para logs."""
    if not token:
        return "<vazio>"
    return f"{token[:8]}..."


class TokenService:
    """Serviço para emitir e validar tokens de broadcast."""
    
    @staticmethod
    def generate_token() -> str:
        """Gera um token url-safe a partir de 24 bytes aleatórios."""
        return secrets.token_urlsafe(24)
    
    @staticmethod
    def token_expiry(end_time: datetime) -> datetime:
        """Expiração do token: fim do slot mais o período de tolerância."""
        return end_time + timedelta(minutes=settings.token_grace_minutes)
    
    @staticmethod
    def get_slot_by_token(db: Session, token: str) -> Optional[BroadcastSlot]:
        """Obtém o slot associado a um token."""
        if not token:
            return None
        return db.query(BroadcastSlot).filter(BroadcastSlot.broadcast_token == token).first()
    
    @staticmethod
    def lookup(db: Session, token: str) -> BroadcastSlot:
        """
        Obtém o slot de um token sem verificar a expiração.
        
        Raises:
            InvalidToken: Se nenhum slot usa o token
        """
        slot = TokenService.get_slot_by_token(db, token)
        if slot is None:
            logger.warning(f"Token de broadcast inválido: {mask_token(token)}")
            raise InvalidToken()
        return slot
    
    @staticmethod
    def compute_schedule_status(slot: BroadcastSlot, now: datetime,
                                lead_seconds: Optional[int] = None) -> ScheduleStatus:
        """
        Calcula early / on_time / late para o instante `now`.
        
        - n/a: slot terminado (completed/missed)
        - early: antes da abertura da janela de go-live
        - late: já começou e o slot ainda não entrou live
        - on_time: restantes casos
        """
        if lead_seconds is None:
            lead_seconds = settings.go_live_lead_seconds
        
        if slot.status in (SlotStatus.COMPLETED, SlotStatus.MISSED):
            return ScheduleStatus.NOT_APPLICABLE
        if now < slot.start_time - timedelta(seconds=lead_seconds):
            return ScheduleStatus.EARLY
        if slot.status == SlotStatus.SCHEDULED and now >= slot.start_time:
            return ScheduleStatus.LATE
        return ScheduleStatus.ON_TIME
    
    @staticmethod
    def schedule_message(slot: BroadcastSlot, schedule_status: ScheduleStatus) -> str:
        """Mensagem legível para o estado de horário."""
        if schedule_status == ScheduleStatus.EARLY:
            return f"O seu show começa às {slot.start_time.strftime('%H:%M')}"
        if schedule_status == ScheduleStatus.LATE:
            return f"O seu show começou às {slot.start_time.strftime('%H:%M')}"
        if schedule_status == ScheduleStatus.NOT_APPLICABLE:
            return "Este slot de broadcast terminou"
        return "Está dentro do horário"
    
    @staticmethod
    def validate(db: Session, token: str, now: datetime) -> TokenValidation:
        """
        Valida um token de broadcast.
        
        Raises:
            InvalidToken: Token desconhecido
            TokenExpired: now > token_expires_at
        """
        slot = TokenService.lookup(db, token)
        
        if now > slot.token_expires_at:
            logger.info(f"Token expirado para slot {slot.id}: {mask_token(token)}")
            raise TokenExpired(slot.token_expires_at)
        
        schedule_status = TokenService.compute_schedule_status(slot, now)
        return TokenValidation(
            slot=slot,
            schedule_status=schedule_status,
            message=TokenService.schedule_message(slot, schedule_status)
        )
