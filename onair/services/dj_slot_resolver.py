"""
Resolução do DJ ativo num slot de broadcast.

Um slot tem um de dois formatos de lineup: um único DJ (remote) ou uma
sequência ordenada de slots de DJ (venue, B3B). A mudança de DJ ativo é
puramente dirigida pelo relógio, por isso a resolução é chamada a cada tick.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Union
from uuid import UUID
from onair.core.errors import InvalidLineup
from onair.models.broadcast_slot import BroadcastSlot, DJSlot


@dataclass(frozen=True)
class SingleDJ:
    """Lineup de um único DJ."""
    name: str
    user_id: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class MultiDJ:
    """Lineup de vários DJs em sub-intervalos ordenados e disjuntos."""
    slots: Tuple[DJSlot, ...]


Lineup = Union[SingleDJ, MultiDJ]


@dataclass
class Resolution:
    """Resultado de uma resolução: DJ ativo e sinal de troca."""
    dj_slot: Optional[DJSlot]
    slot_changed: bool
    
    @property
    def dj_slot_id(self) -> Optional[UUID]:
        return self.dj_slot.id if self.dj_slot is not None else None


def lineup_of(slot: BroadcastSlot) -> Lineup:
    """Retorna o lineup do slot; exatamente um dos formatos deve existir."""
    if slot.dj_slots and slot.dj_name:
        raise InvalidLineup("Slot com dj_name e dj_slots ao mesmo tempo")
    if slot.dj_slots:
        return MultiDJ(slots=tuple(sorted(slot.dj_slots, key=lambda dj: dj.start_time)))
    if slot.dj_name:
        return SingleDJ(name=slot.dj_name, user_id=slot.dj_user_id, email=slot.dj_email)
    raise InvalidLineup("Slot sem DJ definido")


class DJSlotResolver:
    """Determina qual DJ está ativo num dado instante."""
    
    @staticmethod
    def active_dj_slot(slot: BroadcastSlot, now: datetime) -> Optional[DJSlot]:
        """
        Retorna o slot de DJ cujo [start_time, end_time) contém `now`.
        
        None para lineups de DJ único ou quando `now` cai num intervalo vazio.
        """
        lineup = lineup_of(slot)
        if isinstance(lineup, SingleDJ):
            return None
        
        for dj_slot in lineup.slots:
            if dj_slot.start_time <= now < dj_slot.end_time:
                return dj_slot
        return None
    
    @staticmethod
    def next_dj_slot(slot: BroadcastSlot, now: datetime) -> Optional[DJSlot]:
        """Primeiro slot de DJ que começa depois de `now`."""
        lineup = lineup_of(slot)
        if isinstance(lineup, SingleDJ):
            return None
        
        for dj_slot in lineup.slots:
            if dj_slot.start_time > now:
                return dj_slot
        return None
    
    @staticmethod
    def find_dj_slot(slot: BroadcastSlot, dj_slot_id: UUID) -> Optional[DJSlot]:
        """Obtém um slot de DJ pelo id."""
        for dj_slot in slot.dj_slots:
            if dj_slot.id == dj_slot_id:
                return dj_slot
        return None
    
    @staticmethod
    def resolve(slot: BroadcastSlot, now: datetime,
                previous_dj_slot_id: Optional[UUID] = None) -> Resolution:
        """
        Resolve o DJ ativo e compara com o último DJ devolvido.
        
        `previous_dj_slot_id` é o último slot de DJ não nulo visto pelo
        chamador. A troca só é sinalizada quando há um novo performer: entrar
        num intervalo vazio não conta, e o primeiro DJ observado também não.
        """
        active = DJSlotResolver.active_dj_slot(slot, now)
        changed = (
            active is not None
            and previous_dj_slot_id is not None
            and active.id != previous_dj_slot_id
        )
        return Resolution(dj_slot=active, slot_changed=changed)

