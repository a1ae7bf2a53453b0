"""
Máquina de estados do slot de broadcast.

Estados: scheduled -> live <-> paused -> completed, e scheduled -> missed.
Cada transição é uma escrita condicional contra o status persistido
(UPDATE ... WHERE id = :id AND status = :esperado); zero linhas afetadas
significa que outro escritor ganhou e o chamador deve reler o slot.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Tuple
from uuid import UUID
from sqlalchemy.orm import Session
from onair.core.config import settings
from onair.core.errors import AlreadyLive, InvalidTransition, NotYetOpen, WindowClosed
from onair.models.broadcast_slot import BroadcastSlot, SlotStatus
import logging

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    SlotStatus.SCHEDULED: {SlotStatus.LIVE, SlotStatus.MISSED},
    SlotStatus.LIVE: {SlotStatus.PAUSED, SlotStatus.COMPLETED},
    SlotStatus.PAUSED: {SlotStatus.LIVE, SlotStatus.COMPLETED},
    SlotStatus.COMPLETED: set(),
    SlotStatus.MISSED: set(),
}

TERMINAL_STATUSES = (SlotStatus.COMPLETED, SlotStatus.MISSED)
CLAIMED_STATUSES = (SlotStatus.LIVE, SlotStatus.PAUSED)

# Campos do claim live, limpos quando o slot termina
CLAIM_FIELDS = (
    "live_dj_user_id",
    "live_dj_username",
    "live_dj_bio",
    "live_dj_photo_url",
    "live_dj_promo_text",
    "live_dj_promo_hyperlink",
    "current_dj_slot_id",
)


@dataclass
class Claim:
    """Identidade do performer que reclama o slot ao entrar live."""
    user_id: Optional[str] = None
    username: Optional[str] = None
    bio: Optional[str] = None
    photo_url: Optional[str] = None
    promo_text: Optional[str] = None
    promo_hyperlink: Optional[str] = None
    dj_slot_id: Optional[UUID] = None
    
    @property
    def identity(self) -> Optional[str]:
        return self.user_id or self.username
    
    def as_values(self) -> Dict[str, Any]:
        return {
            "live_dj_user_id": self.user_id,
            "live_dj_username": self.username,
            "live_dj_bio": self.bio,
            "live_dj_photo_url": self.photo_url,
            "live_dj_promo_text": self.promo_text,
            "live_dj_promo_hyperlink": self.promo_hyperlink,
            "current_dj_slot_id": self.dj_slot_id,
        }


def claim_identity(slot: BroadcastSlot) -> Optional[str]:
    """Identidade que detém o claim live do slot (conta ou nome)."""
    return slot.live_dj_user_id or slot.live_dj_username


class SlotStateMachine:
    """Guardas e escritas condicionais de status."""
    
    @staticmethod
    def can_transition(current: SlotStatus, target: SlotStatus) -> bool:
        return target in ALLOWED_TRANSITIONS.get(current, set())
    
    @staticmethod
    def ensure_transition(current: SlotStatus, target: SlotStatus) -> None:
        """
        Raises:
            InvalidTransition: Se a aresta current -> target não existe
        """
        if not SlotStateMachine.can_transition(current, target):
            raise InvalidTransition(current.value, target.value)
    
    @staticmethod
    def go_live_window(slot: BroadcastSlot, lead_seconds: Optional[int] = None) -> Tuple[datetime, datetime]:
        """Janela fechada [start_time - lead, end_time] em que o go-live é aceite."""
        if lead_seconds is None:
            lead_seconds = settings.go_live_lead_seconds
        return slot.start_time - timedelta(seconds=lead_seconds), slot.end_time
    
    @staticmethod
    def check_go_live(slot: BroadcastSlot, now: datetime, identity: Optional[str]) -> bool:
        """
        Verifica a guarda de scheduled -> live sem efeitos colaterais.
        
        Retorna True quando o slot já está live com a mesma identidade
        (sucesso idempotente) e False quando a transição pode avançar.
        
        Raises:
            AlreadyLive: Live com outra identidade
            InvalidTransition: Slot paused ou terminado
            NotYetOpen: Antes da abertura da janela
            WindowClosed: Depois de end_time
        """
        if slot.status == SlotStatus.LIVE:
            claimed_by = claim_identity(slot)
            if identity is not None and claimed_by == identity:
                return True
            raise AlreadyLive(claimed_by)
        
        SlotStateMachine.ensure_transition(slot.status, SlotStatus.LIVE)
        if slot.status != SlotStatus.SCHEDULED:
            # paused -> live é feito por resume
            raise InvalidTransition(slot.status.value, "go_live")
        
        opens_at, closes_at = SlotStateMachine.go_live_window(slot)
        if now < opens_at:
            raise NotYetOpen(opens_at)
        if now > closes_at:
            raise WindowClosed(closes_at)
        return False
    
    @staticmethod
    def _conditional_update(db: Session, slot: BroadcastSlot, expected: Iterable[SlotStatus],
                            values: Dict[str, Any]) -> bool:
        rows = (
            db.query(BroadcastSlot)
            .filter(BroadcastSlot.id == slot.id, BroadcastSlot.status.in_(list(expected)))
            .update(values, synchronize_session=False)
        )
        db.commit()
        db.refresh(slot)
        return rows == 1
    
    @staticmethod
    def transition(db: Session, slot: BroadcastSlot, target: SlotStatus, now: datetime,
                   claim: Optional[Claim] = None, expected: Optional[SlotStatus] = None) -> bool:
        """
        Aplica uma transição de status como escrita condicional.
        
        `expected` é o status lido quando a guarda foi avaliada (padrão: o
        status atual do objeto). Retorna False quando outro escritor alterou o
        status entretanto; o slot é sempre relido antes de retornar.
        
        Raises:
            InvalidTransition: Se a aresta não existe para o status lido
        """
        current = expected or slot.status
        SlotStateMachine.ensure_transition(current, target)
        
        values: Dict[str, Any] = {"status": target, "updated_at": now}
        if target == SlotStatus.LIVE:
            values["paused_at"] = None
            if current == SlotStatus.SCHEDULED:
                values["went_live_at"] = now
            if claim is not None:
                values.update(claim.as_values())
        elif target == SlotStatus.PAUSED:
            values["paused_at"] = now
        else:
            values["ended_at"] = now
            for field in CLAIM_FIELDS:
                values[field] = None
        
        won = SlotStateMachine._conditional_update(db, slot, [current], values)
        if won:
            logger.info(f"Slot {slot.id}: {current.value} -> {target.value}")
        else:
            logger.warning(
                f"Slot {slot.id}: transição {current.value} -> {target.value} perdida "
                f"(status atual: {slot.status.value})"
            )
        return won
    
    @staticmethod
    def update_claim(db: Session, slot: BroadcastSlot, values: Dict[str, Any], now: datetime) -> bool:
        """Atualiza campos do claim apenas enquanto o slot está live ou paused."""
        values = {**values, "updated_at": now}
        return SlotStateMachine._conditional_update(db, slot, CLAIMED_STATUSES, values)
