"""
Serviço de agendamento de slots de broadcast.
"""
from sqlalchemy.orm import Session
from onair.core.config import settings
from onair.core.errors import InvalidLineup, InvalidTransition, SlotNotFound, DJSlotNotFound
from onair.models.broadcast_slot import BroadcastSlot, BroadcastType, DJSlot, SlotStatus
from onair.services.slot_state_machine import SlotStateMachine
from onair.services.token_service import TokenService
from onair.utils.url import broadcast_url
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging

logger = logging.getLogger(__name__)

DJ_SLOT_FIELDS = (
    "dj_name",
    "start_time",
    "end_time",
    "dj_email",
    "dj_user_id",
    "dj_username",
    "dj_bio",
    "dj_photo_url",
    "dj_promo_text",
    "dj_promo_hyperlink",
    "dj_thank_you_message",
    "dj_social_links",
    "dj_profiles",
)


def validate_dj_slots(start_time: datetime, end_time: datetime, dj_slots: List[Dict[str, Any]]) -> None:
    """
    Slots de DJ dentro do slot pai, ordenados e disjuntos (intervalos vazios são permitidos).

    Raises:
        InvalidLineup: Se algum intervalo for inválido ou houver sobreposição
    """
    ordered = sorted(dj_slots, key=lambda dj: dj["start_time"])
    previous_end = None
    for dj in ordered:
        if dj["end_time"] <= dj["start_time"]:
            raise InvalidLineup("Slot de DJ com intervalo vazio")
        if dj["start_time"] < start_time or dj["end_time"] > end_time:
            raise InvalidLineup("Slot de DJ fora do horário do show")
        if previous_end is not None and dj["start_time"] < previous_end:
            raise InvalidLineup("Slots de DJ sobrepostos")
        previous_end = dj["end_time"]


class SlotService:
    """Serviço para gerenciar slots de broadcast."""

    @staticmethod
    def create_slot(
        db: Session,
        show_name: str,
        start_time: datetime,
        end_time: datetime,
        broadcast_type: BroadcastType = BroadcastType.VENUE,
        dj_name: Optional[str] = None,
        dj_user_id: Optional[str] = None,
        dj_email: Optional[str] = None,
        dj_slots: Optional[List[Dict[str, Any]]] = None,
        venue_slug: Optional[str] = None,
        station_id: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> Tuple[BroadcastSlot, str]:
        """
        Cria um slot de broadcast com token novo.

        Retorna o slot e o link a entregar ao DJ.

        Raises:
            InvalidLineup: Horário incoerente ou lineup inválido
        """
        if end_time <= start_time:
            raise InvalidLineup("end_time deve ser posterior a start_time")
        if bool(dj_name) == bool(dj_slots):
            raise InvalidLineup("Informe dj_name ou dj_slots (exatamente um)")
        if dj_slots:
            validate_dj_slots(start_time, end_time, dj_slots)

        slot = BroadcastSlot(
            station_id=station_id or settings.station_id,
            show_name=show_name,
            broadcast_type=broadcast_type,
            venue_slug=venue_slug,
            dj_name=dj_name,
            dj_user_id=dj_user_id,
            dj_email=dj_email,
            start_time=start_time,
            end_time=end_time,
            broadcast_token=TokenService.generate_token(),
            token_expires_at=TokenService.token_expiry(end_time),
            status=SlotStatus.SCHEDULED,
            created_by=created_by
        )
        for position, dj in enumerate(sorted(dj_slots or [], key=lambda dj: dj["start_time"])):
            slot.dj_slots.append(DJSlot(
                position=position,
                **{key: dj.get(key) for key in DJ_SLOT_FIELDS}
            ))

        db.add(slot)
        db.commit()
        db.refresh(slot)

        logger.info(f"Slot de broadcast criado: {slot.show_name} ({slot.id})")
        return slot, SlotService.broadcast_url(slot)

    @staticmethod
    def broadcast_url(slot: BroadcastSlot) -> str:
        return broadcast_url(settings.app_url, slot.broadcast_type.value, slot.broadcast_token, slot.venue_slug)

    @staticmethod
    def get_slot_by_id(db: Session, slot_id: UUID) -> Optional[BroadcastSlot]:
        """Obtém um slot pelo ID."""
        return db.query(BroadcastSlot).filter(BroadcastSlot.id == slot_id).first()

    @staticmethod
    def get_slot(db: Session, slot_id: UUID) -> BroadcastSlot:
        """
        Raises:
            SlotNotFound: Se o slot não existir
        """
        slot = SlotService.get_slot_by_id(db, slot_id)
        if slot is None:
            raise SlotNotFound()
        return slot

    @staticmethod
    def _range_query(db: Session, station_id: Optional[str], start_from: Optional[datetime],
                     start_to: Optional[datetime], status: Optional[SlotStatus]):
        query = db.query(BroadcastSlot)

        if station_id:
            query = query.filter(BroadcastSlot.station_id == station_id)
        if start_from:
            query = query.filter(BroadcastSlot.start_time >= start_from)
        if start_to:
            query = query.filter(BroadcastSlot.start_time <= start_to)
        if status:
            query = query.filter(BroadcastSlot.status == status)

        return query

    @staticmethod
    def list_slots(db: Session, station_id: Optional[str] = None, start_from: Optional[datetime] = None,
                   start_to: Optional[datetime] = None, status: Optional[SlotStatus] = None,
                   skip: int = 0, limit: int = 100) -> List[BroadcastSlot]:
        """Lista slots num intervalo de datas, por ordem de início."""
        query = SlotService._range_query(db, station_id, start_from, start_to, status)
        return query.order_by(BroadcastSlot.start_time).offset(skip).limit(limit).all()

    @staticmethod
    def count_slots(db: Session, station_id: Optional[str] = None, start_from: Optional[datetime] = None,
                    start_to: Optional[datetime] = None, status: Optional[SlotStatus] = None) -> int:
        """Conta o total de slots com os mesmos filtros de list_slots."""
        return SlotService._range_query(db, station_id, start_from, start_to, status).count()

    @staticmethod
    def update_slot(
        db: Session,
        slot_id: UUID,
        now: datetime,
        show_name: Optional[str] = None,
        dj_name: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        dj_slots: Optional[List[Dict[str, Any]]] = None
    ) -> BroadcastSlot:
        """
        Atualiza um slot de broadcast.

        Os slots de DJ existentes são editados pelo id e os novos acrescentados;
        nenhum é removido. Só slots scheduled podem mudar de horário.

        Raises:
            SlotNotFound, DJSlotNotFound: Slot ou slot de DJ inexistente
            InvalidTransition: Mudança de horário fora de scheduled
            InvalidLineup: Horário ou lineup incoerentes
        """
        slot = SlotService.get_slot(db, slot_id)

        if (start_time or end_time) and slot.status != SlotStatus.SCHEDULED:
            raise InvalidTransition(slot.status.value, "reschedule")

        new_start = start_time or slot.start_time
        new_end = end_time or slot.end_time
        if new_end <= new_start:
            raise InvalidLineup("end_time deve ser posterior a start_time")
        if dj_name and slot.dj_slots:
            raise InvalidLineup("Slot com vários DJs não aceita dj_name")
        if dj_slots and slot.dj_name:
            raise InvalidLineup("Slot de DJ único não aceita dj_slots")

        merged = []
        if dj_slots is not None or slot.dj_slots:
            by_id = {dj.id: dj for dj in slot.dj_slots}
            edited = {}
            for dj in dj_slots or []:
                if dj.get("id") is not None:
                    if dj["id"] not in by_id:
                        raise DJSlotNotFound()
                    edited[dj["id"]] = dj

            for existing in slot.dj_slots:
                values = {key: getattr(existing, key) for key in DJ_SLOT_FIELDS}
                values.update({k: v for k, v in edited.get(existing.id, {}).items() if k != "id"})
                merged.append(values)
            merged.extend(dj for dj in dj_slots or [] if dj.get("id") is None)
            validate_dj_slots(new_start, new_end, merged)

        if show_name:
            slot.show_name = show_name.strip()
        if dj_name:
            slot.dj_name = dj_name
        if end_time and end_time != slot.end_time:
            slot.token_expires_at = TokenService.token_expiry(end_time)
        slot.start_time = new_start
        slot.end_time = new_end

        for dj in dj_slots or []:
            if dj.get("id") is not None:
                target = next(existing for existing in slot.dj_slots if existing.id == dj["id"])
                for key, value in dj.items():
                    if key != "id" and key in DJ_SLOT_FIELDS:
                        setattr(target, key, value)
            else:
                slot.dj_slots.append(DJSlot(
                    position=len(slot.dj_slots),
                    **{key: dj.get(key) for key in DJ_SLOT_FIELDS}
                ))

        slot.updated_at = now
        db.commit()
        db.refresh(slot)

        logger.info(f"Slot de broadcast atualizado: {slot.id}")
        return slot

    @staticmethod
    def delete_slot(db: Session, slot_id: UUID) -> bool:
        """
        Remove um slot scheduled ou missed.

        Raises:
            SlotNotFound: Se o slot não existir
            InvalidTransition: Slot live, paused ou completed
        """
        slot = SlotService.get_slot(db, slot_id)
        if slot.status not in (SlotStatus.SCHEDULED, SlotStatus.MISSED):
            raise InvalidTransition(slot.status.value, "delete")

        db.delete(slot)
        db.commit()

        logger.info(f"Slot de broadcast removido: {slot_id}")
        return True

    @staticmethod
    def venue_slots(db: Session, venue_slug: str, now: datetime) -> Tuple[Optional[BroadcastSlot], Optional[BroadcastSlot]]:
        """
        Slot atual e próximo de uma venue.

        O atual é o que tem start_time - lead <= now < end_time e não está
        terminado; o próximo é o primeiro scheduled a começar depois.
        """
        slots = (
            db.query(BroadcastSlot)
            .filter(
                BroadcastSlot.venue_slug == venue_slug,
                BroadcastSlot.broadcast_type == BroadcastType.VENUE,
                BroadcastSlot.end_time > now,
                BroadcastSlot.status.in_([SlotStatus.SCHEDULED, SlotStatus.LIVE, SlotStatus.PAUSED])
            )
            .order_by(BroadcastSlot.start_time)
            .all()
        )

        current = None
        upcoming = None
        for slot in slots:
            opens_at, _ = SlotStateMachine.go_live_window(slot)
            if current is None and opens_at <= now:
                current = slot
            elif upcoming is None and slot.start_time > now:
                upcoming = slot
        return current, upcoming
