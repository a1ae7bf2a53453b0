"""
Session Orchestrator - fachada das sessões live dos DJs.

Compõe o token de capacidade, o resolver de DJs, a máquina de estados e o
serviço de gravações, e fala com o transporte de media. Todas as operações
recebem `now` explicitamente; só as rotas e o worker de reconciliação leem o
relógio.

Ordem das operações com efeitos externos: guardas primeiro, admissão no
transporte depois, escrita de status só após a admissão ter sucesso.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from uuid import UUID
from fastapi import Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session
from onair.core.config import settings
from onair.core.errors import (
    AlreadyLive,
    DJSlotNotFound,
    InvalidContent,
    InvalidLineup,
    InvalidTransition,
    SlotNotFound,
    TransportUnavailable,
    WindowClosed,
    format_time,
)
from onair.models.broadcast_slot import BroadcastSlot, DJSlot, SlotStatus
from onair.models.recording import Recording
from onair.services.dj_slot_resolver import DJSlotResolver, MultiDJ, lineup_of
from onair.services.recording_service import RecordingService
from onair.services.slot_state_machine import (
    CLAIMED_STATUSES,
    Claim,
    SlotStateMachine,
    claim_identity,
)
from onair.services.token_service import ScheduleStatus, TokenService
from onair.utils.media_transport import MediaTransport, SessionRef, bounded, get_media_transport
from onair.utils.url import validate_hyperlink
import logging

logger = logging.getLogger(__name__)

MAX_PROMO_TEXT_LENGTH = 200
MAX_THANK_YOU_LENGTH = 200


@dataclass
class SessionHandle:
    """Resultado de go_live/resume: slot atualizado e credencial da sala."""
    slot: BroadcastSlot
    session: SessionRef
    identity: str
    recording: Optional[Recording] = None
    already_live: bool = False


@dataclass
class DJChangeWarning:
    """Aviso de fim do slot de DJ ativo num show B3B."""
    level: str  # warning | urgent
    seconds_remaining: int
    next_dj_name: Optional[str] = None


@dataclass
class SlotView:
    """Vista observável de um slot num instante."""
    status: SlotStatus
    schedule_status: ScheduleStatus
    active_dj_slot: Optional[DJSlot]
    next_dj_slot: Optional[DJSlot]
    slot_changed: bool
    can_go_live: bool
    can_resume: bool
    message: str
    go_live_opens_at: datetime
    ends_at: datetime
    dj_change_warning: Optional[DJChangeWarning] = None


@dataclass
class ReconcileReport:
    """Contagens de uma passagem de reconciliação."""
    checked: int = 0
    completed: int = 0
    missed: int = 0
    disconnected: int = 0
    switched: int = 0
    failed: int = 0
    failed_slot_ids: List[UUID] = field(default_factory=list)


def claim_from_dj_slot(slot: BroadcastSlot, dj_slot: DJSlot,
                       dj_user_id: Optional[str] = None,
                       dj_username: Optional[str] = None) -> Claim:
    """Claim a partir do perfil pré-resolvido de um slot de DJ."""
    return Claim(
        user_id=dj_user_id or dj_slot.dj_user_id,
        username=dj_username or dj_slot.dj_username or dj_slot.dj_name,
        bio=dj_slot.dj_bio,
        photo_url=dj_slot.dj_photo_url,
        promo_text=dj_slot.promo_text or dj_slot.dj_promo_text or slot.show_promo_text,
        promo_hyperlink=dj_slot.promo_hyperlink or dj_slot.dj_promo_hyperlink or slot.show_promo_hyperlink,
        dj_slot_id=dj_slot.id
    )


def validate_promo(text: Optional[str], hyperlink: Optional[str]) -> Tuple[str, Optional[str]]:
    """
    Normaliza o conteúdo de promo.

    Raises:
        InvalidContent: Texto vazio ou longo demais, ou hyperlink inválido
    """
    text = (text or "").strip()
    if not text:
        raise InvalidContent("O texto da promo é obrigatório")
    if len(text) > MAX_PROMO_TEXT_LENGTH:
        raise InvalidContent(f"Texto da promo muito longo (máx. {MAX_PROMO_TEXT_LENGTH} caracteres)")

    link = None
    if hyperlink and hyperlink.strip():
        try:
            link = validate_hyperlink(hyperlink)
        except ValueError as e:
            raise InvalidContent(str(e)) from e
    return text, link


class SessionOrchestrator:
    """Fachada chamada pelas sessões dos clientes e pelo sweep."""

    def __init__(self, transport: MediaTransport, recordings: Optional[RecordingService] = None):
        self.transport = transport
        self.recordings = recordings or RecordingService(transport)

    # ------------------------------------------------------------------
    # Claim e identidade
    # ------------------------------------------------------------------

    @staticmethod
    def build_claim(slot: BroadcastSlot, now: datetime,
                    dj_user_id: Optional[str] = None,
                    dj_username: Optional[str] = None) -> Claim:
        """
        Claim para o go-live.

        Em shows B3B o slot de DJ é resolvido em max(now, start_time), pois o
        go-live pode acontecer no minuto anterior ao início.
        """
        lineup = lineup_of(slot)
        if isinstance(lineup, MultiDJ):
            dj_slot = DJSlotResolver.active_dj_slot(slot, max(now, slot.start_time))
            if dj_slot is not None:
                return claim_from_dj_slot(slot, dj_slot, dj_user_id, dj_username)
            return Claim(
                user_id=dj_user_id,
                username=dj_username,
                promo_text=slot.show_promo_text,
                promo_hyperlink=slot.show_promo_hyperlink
            )

        return Claim(
            user_id=dj_user_id or lineup.user_id,
            username=dj_username or lineup.name,
            promo_text=slot.show_promo_text,
            promo_hyperlink=slot.show_promo_hyperlink
        )

    async def _admit(self, slot: BroadcastSlot, identity: str, name: Optional[str]) -> SessionRef:
        return await bounded(
            self.transport.admit_session(slot.station_id, identity, name),
            "admit_session"
        )

    async def _release(self, room: str, identity: str) -> bool:
        """Remove o participante da sala (best-effort)."""
        try:
            await bounded(self.transport.remove_participant(room, identity), "remove_participant")
            return True
        except TransportUnavailable:
            logger.warning(f"Falha ao remover participante {identity} da sala {room}")
            return False

    async def _start_recording(self, db: Session, slot: BroadcastSlot, now: datetime) -> Optional[Recording]:
        """Gravação best-effort: a sessão continua live sem gravação."""
        try:
            return await self.recordings.start_recording(db, slot, now)
        except TransportUnavailable:
            logger.warning(f"Slot {slot.id} live sem gravação: falha ao iniciar egress")
            return None

    # ------------------------------------------------------------------
    # Operações da sessão
    # ------------------------------------------------------------------

    async def go_live(
        self,
        db: Session,
        token: str,
        now: datetime,
        dj_user_id: Optional[str] = None,
        dj_username: Optional[str] = None,
        record: Optional[bool] = None
    ) -> SessionHandle:
        """
        Entra live com um token de broadcast.

        Raises:
            InvalidToken, TokenExpired: Token inválido ou expirado
            NotYetOpen, WindowClosed: Fora da janela de go-live
            AlreadyLive: Slot live com outra identidade
            InvalidTransition: Slot paused ou terminado
            InvalidContent: Nenhum DJ identificado (intervalo vazio de um show B3B)
            TransportUnavailable: Falha ou timeout na admissão
        """
        slot = TokenService.validate(db, token, now).slot
        claim = self.build_claim(slot, now, dj_user_id, dj_username)
        if not claim.identity:
            raise InvalidContent("Sem DJ agendado neste momento: informe o nome de DJ")
        identity = claim.identity

        already_live = SlotStateMachine.check_go_live(slot, now, identity)
        session = await self._admit(slot, identity, claim.username)

        if already_live:
            logger.info(f"Go-live repetido por {identity} no slot {slot.id}")
            return SessionHandle(slot=slot, session=session, identity=identity, already_live=True)

        if not SlotStateMachine.transition(db, slot, SlotStatus.LIVE, now, claim, expected=SlotStatus.SCHEDULED):
            claimed_by = claim_identity(slot)
            if slot.status == SlotStatus.LIVE and claimed_by == identity:
                return SessionHandle(slot=slot, session=session, identity=identity, already_live=True)
            if slot.status == SlotStatus.LIVE:
                raise AlreadyLive(claimed_by)
            raise InvalidTransition(slot.status.value, SlotStatus.LIVE.value)

        if claim.dj_slot_id is not None:
            dj_slot = DJSlotResolver.find_dj_slot(slot, claim.dj_slot_id)
            dj_slot.live_dj_user_id = claim.user_id
            dj_slot.live_dj_username = claim.username
            db.commit()

        logger.info(f"Slot {slot.id} live com {identity} ({slot.show_name})")

        recording = None
        if settings.recording_enabled if record is None else record:
            recording = await self._start_recording(db, slot, now)

        return SessionHandle(slot=slot, session=session, identity=identity, recording=recording)

    async def resume(self, db: Session, token: str, now: datetime, record: Optional[bool] = None) -> SessionHandle:
        """
        Retoma um slot paused com o mesmo token; não reavalia a janela de go-live.

        Raises:
            InvalidToken, TokenExpired: Token inválido ou expirado
            InvalidTransition: Slot não está paused
            WindowClosed: now > end_time
            InvalidContent: Slot paused sem claim de DJ
            TransportUnavailable: Falha ou timeout na admissão
        """
        slot = TokenService.validate(db, token, now).slot
        if slot.status != SlotStatus.PAUSED:
            raise InvalidTransition(slot.status.value, SlotStatus.LIVE.value)
        if now > slot.end_time:
            raise WindowClosed(slot.end_time)

        identity = claim_identity(slot)
        if not identity:
            raise InvalidContent("O slot paused não tem DJ identificado")
        session = await self._admit(slot, identity, slot.live_dj_username)

        if not SlotStateMachine.transition(db, slot, SlotStatus.LIVE, now, expected=SlotStatus.PAUSED):
            if slot.status == SlotStatus.LIVE and claim_identity(slot) == identity:
                return SessionHandle(slot=slot, session=session, identity=identity, already_live=True)
            raise InvalidTransition(slot.status.value, SlotStatus.LIVE.value)

        logger.info(f"Slot {slot.id} retomado por {identity}")

        recording = None
        if settings.recording_enabled if record is None else record:
            recording = await self._start_recording(db, slot, now)

        return SessionHandle(slot=slot, session=session, identity=identity, recording=recording)

    async def pause(
        self,
        db: Session,
        now: datetime,
        token: Optional[str] = None,
        slot_id: Optional[UUID] = None
    ) -> BroadcastSlot:
        """
        Marca a desconexão da sessão: live -> paused.

        Não faz nada se o slot não estiver live. As gravações ativas são
        paradas; o resume inicia um novo segmento.
        """
        if token:
            slot = TokenService.lookup(db, token)
        else:
            slot = db.query(BroadcastSlot).filter(BroadcastSlot.id == slot_id).first()
            if slot is None:
                raise SlotNotFound()

        if slot.status != SlotStatus.LIVE:
            return slot

        await self.recordings.stop_recording(db, slot, now)
        SlotStateMachine.transition(db, slot, SlotStatus.PAUSED, now, expected=SlotStatus.LIVE)
        return slot

    async def on_participant_left(self, db: Session, room: str, identity: str,
                                  now: datetime) -> Optional[BroadcastSlot]:
        """Pausa o slot live cujo claim pertence ao participante que saiu."""
        slots = (
            db.query(BroadcastSlot)
            .filter(BroadcastSlot.station_id == room, BroadcastSlot.status == SlotStatus.LIVE)
            .all()
        )
        for slot in slots:
            if claim_identity(slot) == identity:
                return await self.pause(db, now, slot_id=slot.id)

        logger.info(f"Participante {identity} saiu de {room} sem slot live associado")
        return None

    async def end_broadcast(self, db: Session, token: str, now: datetime) -> BroadcastSlot:
        """
        Termina o broadcast: para gravações, completa o slot e liberta a sala.

        Idempotente: terminar um slot já completed é sucesso sem efeitos. O
        token não precisa de estar dentro da validade.

        Raises:
            InvalidToken: Token desconhecido
            InvalidTransition: Slot scheduled ou missed
        """
        slot = TokenService.lookup(db, token)
        if slot.status == SlotStatus.COMPLETED:
            return slot
        if slot.status not in CLAIMED_STATUSES:
            raise InvalidTransition(slot.status.value, SlotStatus.COMPLETED.value)

        current = slot.status
        identity = claim_identity(slot)
        await self.recordings.stop_recording(db, slot, now)

        if not SlotStateMachine.transition(db, slot, SlotStatus.COMPLETED, now, expected=current):
            if slot.status == SlotStatus.COMPLETED:
                return slot
            raise InvalidTransition(slot.status.value, SlotStatus.COMPLETED.value)

        if identity:
            await self._release(slot.station_id, identity)

        logger.info(f"Broadcast terminado: slot {slot.id}")
        return slot

    # ------------------------------------------------------------------
    # Conteúdo do DJ ativo
    # ------------------------------------------------------------------

    def submit_promo(self, db: Session, token: str, now: datetime,
                     text: Optional[str], hyperlink: Optional[str] = None) -> Optional[BroadcastSlot]:
        """
        Publica a promo do DJ ativo. Retorna None quando não há sessão live.

        Raises:
            InvalidToken, TokenExpired: Token inválido ou expirado
            WindowClosed: now > end_time
            InvalidContent: Texto ou hyperlink inválidos
        """
        slot = TokenService.validate(db, token, now).slot
        if now > slot.end_time:
            raise WindowClosed(slot.end_time)

        text, link = validate_promo(text, hyperlink)

        if slot.status != SlotStatus.LIVE:
            logger.info(f"Promo ignorada: slot {slot.id} não está live")
            return None

        if isinstance(lineup_of(slot), MultiDJ):
            dj_slot = DJSlotResolver.active_dj_slot(slot, now)
            if dj_slot is None:
                logger.info(f"Promo ignorada: nenhum DJ ativo no slot {slot.id}")
                return None
            dj_slot.promo_text = text
            dj_slot.promo_hyperlink = link
            if slot.current_dj_slot_id == dj_slot.id:
                slot.live_dj_promo_text = text
                slot.live_dj_promo_hyperlink = link
        else:
            slot.show_promo_text = text
            slot.show_promo_hyperlink = link
            slot.live_dj_promo_text = text
            slot.live_dj_promo_hyperlink = link

        slot.updated_at = now
        db.commit()
        db.refresh(slot)

        logger.info(f"Promo atualizada no slot {slot.id}")
        return slot

    def submit_thank_you(self, db: Session, token: str, now: datetime,
                         message: Optional[str]) -> Optional[BroadcastSlot]:
        """
        Guarda a mensagem de agradecimento do DJ ativo (cortada a 200 caracteres).

        Raises:
            InvalidToken, TokenExpired: Token inválido ou expirado
            InvalidContent: Mensagem vazia
        """
        slot = TokenService.validate(db, token, now).slot

        message = (message or "").strip()[:MAX_THANK_YOU_LENGTH]
        if not message:
            raise InvalidContent("A mensagem de agradecimento é obrigatória")

        if slot.status != SlotStatus.LIVE:
            logger.info(f"Agradecimento ignorado: slot {slot.id} não está live")
            return None

        if isinstance(lineup_of(slot), MultiDJ):
            dj_slot = DJSlotResolver.active_dj_slot(slot, now)
            if dj_slot is None:
                return None
            dj_slot.thank_you_message = message
        else:
            slot.thank_you_message = message

        slot.updated_at = now
        db.commit()
        db.refresh(slot)
        return slot

    def switch_dj(
        self,
        db: Session,
        token: str,
        dj_slot_id: UUID,
        now: datetime,
        dj_user_id: Optional[str] = None,
        dj_username: Optional[str] = None
    ) -> BroadcastSlot:
        """
        Passa o claim live para outro slot de DJ (troca B3B).

        Raises:
            InvalidLineup: Slot de DJ único
            DJSlotNotFound: dj_slot_id não pertence ao slot
            InvalidTransition: Slot não está live nem paused
        """
        slot = TokenService.validate(db, token, now).slot
        if not isinstance(lineup_of(slot), MultiDJ):
            raise InvalidLineup("A troca de DJ só existe em shows com vários DJs")

        dj_slot = DJSlotResolver.find_dj_slot(slot, dj_slot_id)
        if dj_slot is None:
            raise DJSlotNotFound()
        if slot.status not in CLAIMED_STATUSES:
            raise InvalidTransition(slot.status.value, "switch_dj")
        if slot.current_dj_slot_id == dj_slot.id:
            return slot

        self._apply_dj_slot(db, slot, dj_slot, now, dj_user_id, dj_username)
        return slot

    @staticmethod
    def _apply_dj_slot(db: Session, slot: BroadcastSlot, dj_slot: DJSlot, now: datetime,
                       dj_user_id: Optional[str] = None, dj_username: Optional[str] = None) -> bool:
        claim = claim_from_dj_slot(slot, dj_slot, dj_user_id, dj_username)
        if not SlotStateMachine.update_claim(db, slot, claim.as_values(), now):
            logger.warning(f"Troca de DJ ignorada: slot {slot.id} já não está live")
            return False

        dj_slot.live_dj_user_id = claim.user_id
        dj_slot.live_dj_username = claim.username
        db.commit()

        logger.info(f"Slot {slot.id}: DJ ativo agora é {claim.username}")
        return True

    def claim_identity(self, db: Session, token: str, now: datetime,
                       dj_user_id: str, dj_username: Optional[str] = None) -> BroadcastSlot:
        """Regista a conta do performer que autenticou já com o slot live."""
        slot = TokenService.validate(db, token, now).slot
        if slot.status != SlotStatus.LIVE:
            logger.info(f"Identidade não registada: slot {slot.id} não está live")
            return slot

        values = {"live_dj_user_id": dj_user_id}
        if dj_username:
            values["live_dj_username"] = dj_username

        if slot.current_dj_slot_id is not None:
            dj_slot = DJSlotResolver.find_dj_slot(slot, slot.current_dj_slot_id)
            if dj_slot is not None:
                dj_slot.live_dj_user_id = dj_user_id
                if dj_username:
                    dj_slot.live_dj_username = dj_username

        SlotStateMachine.update_claim(db, slot, values, now)
        return slot

    # ------------------------------------------------------------------
    # Vista por tick
    # ------------------------------------------------------------------

    @staticmethod
    def _dj_change_warning(active: Optional[DJSlot], upcoming: Optional[DJSlot],
                           now: datetime) -> Optional[DJChangeWarning]:
        if active is None:
            return None

        remaining = int((active.end_time - now).total_seconds())
        if remaining <= settings.dj_change_urgent_seconds:
            level = "urgent"
        elif remaining <= settings.dj_change_warning_minutes * 60:
            level = "warning"
        else:
            return None

        next_name = None
        if upcoming is not None:
            next_name = upcoming.dj_username or upcoming.dj_name
        return DJChangeWarning(level=level, seconds_remaining=remaining, next_dj_name=next_name)

    @staticmethod
    def _message(slot: BroadcastSlot, now: datetime, opens_at: datetime) -> str:
        if slot.status == SlotStatus.COMPLETED:
            return "Broadcast terminado"
        if slot.status == SlotStatus.MISSED:
            return "Este slot não chegou a ir live"
        if slot.status == SlotStatus.LIVE:
            return "Está live"
        if now > slot.end_time:
            return f"O seu slot terminou às {format_time(slot.end_time)}"
        if slot.status == SlotStatus.PAUSED:
            return f"Ligação perdida. Pode retomar até às {format_time(slot.end_time)}"
        if now < opens_at:
            return f"GO LIVE disponível às {format_time(opens_at)}"
        return "Pronto para entrar live"

    def tick(self, slot: BroadcastSlot, now: datetime,
             previous_dj_slot_id: Optional[UUID] = None) -> SlotView:
        """
        Vista observável do slot em `now`, sem efeitos colaterais.

        `previous_dj_slot_id` é o último slot de DJ não nulo que o cliente viu;
        slot_changed indica que o novo performer tem de passar pelo perfil.
        """
        opens_at, closes_at = SlotStateMachine.go_live_window(slot)
        resolution = DJSlotResolver.resolve(slot, now, previous_dj_slot_id)
        upcoming = DJSlotResolver.next_dj_slot(slot, now)

        warning = None
        if slot.status in CLAIMED_STATUSES:
            warning = self._dj_change_warning(resolution.dj_slot, upcoming, now)

        return SlotView(
            status=slot.status,
            schedule_status=TokenService.compute_schedule_status(slot, now),
            active_dj_slot=resolution.dj_slot,
            next_dj_slot=upcoming,
            slot_changed=resolution.slot_changed,
            can_go_live=slot.status == SlotStatus.SCHEDULED and opens_at <= now <= closes_at,
            can_resume=slot.status == SlotStatus.PAUSED and now <= slot.end_time,
            message=self._message(slot, now, opens_at),
            go_live_opens_at=opens_at,
            ends_at=slot.end_time,
            dj_change_warning=warning
        )

    # ------------------------------------------------------------------
    # Reconciliação
    # ------------------------------------------------------------------

    async def _complete(self, db: Session, slot: BroadcastSlot, now: datetime,
                        report: ReconcileReport) -> None:
        current = slot.status
        identity = claim_identity(slot)

        await self.recordings.stop_recording(db, slot, now)
        if not SlotStateMachine.transition(db, slot, SlotStatus.COMPLETED, now, expected=current):
            return

        report.completed += 1
        if current == SlotStatus.LIVE and identity and await self._release(slot.station_id, identity):
            report.disconnected += 1

    async def reconcile_slot(self, db: Session, slot: BroadcastSlot, now: datetime,
                             report: ReconcileReport) -> None:
        """
        Reconcilia um slot com o relógio.

        - now > end_time: scheduled -> missed, live/paused -> completed
        - paused há mais de MAX_PAUSE_MINUTES (se configurado) -> completed
        - live B3B: acompanha current_dj_slot_id com o DJ ativo
        """
        if now > slot.end_time:
            if slot.status == SlotStatus.SCHEDULED:
                if SlotStateMachine.transition(db, slot, SlotStatus.MISSED, now):
                    report.missed += 1
            elif slot.status in CLAIMED_STATUSES:
                await self._complete(db, slot, now, report)
            return

        if (
            slot.status == SlotStatus.PAUSED
            and settings.max_pause_minutes
            and slot.paused_at is not None
            and now - slot.paused_at > timedelta(minutes=settings.max_pause_minutes)
        ):
            logger.info(f"Slot {slot.id} em pausa há mais de {settings.max_pause_minutes} min")
            await self._complete(db, slot, now, report)
            return

        if slot.status == SlotStatus.LIVE and isinstance(lineup_of(slot), MultiDJ):
            active = DJSlotResolver.active_dj_slot(slot, now)
            if active is not None and active.id != slot.current_dj_slot_id:
                if self._apply_dj_slot(db, slot, active, now):
                    report.switched += 1

    async def reconcile_all(self, db: Session, now: datetime) -> ReconcileReport:
        """
        Passagem de reconciliação sobre todos os slots não terminais.

        Cada slot é independente: uma falha é registada e o slot é tentado de
        novo na passagem seguinte.
        """
        report = ReconcileReport()
        slots = (
            db.query(BroadcastSlot)
            .filter(
                BroadcastSlot.status.in_([SlotStatus.SCHEDULED, SlotStatus.LIVE, SlotStatus.PAUSED]),
                or_(BroadcastSlot.end_time < now, BroadcastSlot.status != SlotStatus.SCHEDULED)
            )
            .order_by(BroadcastSlot.start_time)
            .all()
        )

        for slot in slots:
            report.checked += 1
            slot_id = slot.id
            try:
                await self.reconcile_slot(db, slot, now, report)
            except Exception as e:
                db.rollback()
                report.failed += 1
                report.failed_slot_ids.append(slot_id)
                logger.error(f"Erro ao reconciliar slot {slot_id}: {e}")

        if report.completed or report.missed or report.switched or report.failed:
            logger.info(
                f"Reconciliação: {report.completed} completed, {report.missed} missed, "
                f"{report.switched} trocas de DJ, {report.failed} falhas"
            )
        return report



def get_orchestrator(transport: MediaTransport = Depends(get_media_transport)) -> SessionOrchestrator:
    """Dependency para obter o orquestrador sobre o transporte configurado."""
    return SessionOrchestrator(transport)
