"""
Reconciliation Worker - sweep periódico dos slots de broadcast.

Nada observa a passagem do tempo quando nenhum cliente está ligado; este
worker fecha slots expirados (missed/completed) e acompanha a troca de DJ
nos shows B3B, a cada RECONCILE_INTERVAL_SECONDS.
"""
import logging
from datetime import datetime
from typing import Callable, Optional
from sqlalchemy.orm import Session
from onair.core.clock import utcnow
from onair.core.config import settings
from onair.core.database import SessionLocal
from onair.core.scheduler import SchedulerManager
from onair.services.session_orchestrator import ReconcileReport, SessionOrchestrator
from onair.utils.media_transport import MediaTransport, media_transport

logger = logging.getLogger(__name__)

JOB_ID = "broadcast_slot_reconciliation"


class ReconciliationWorker:
    """Worker que agenda a reconciliação no APScheduler."""
    
    def __init__(
        self,
        transport: MediaTransport,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: Optional[int] = None
    ):
        self.running = False
        self.orchestrator = SessionOrchestrator(transport)
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds or settings.reconcile_interval_seconds
        self.last_report: Optional[ReconcileReport] = None
        self.last_run_at: Optional[datetime] = None
    
    async def run_once(self, now: Optional[datetime] = None) -> ReconcileReport:
        """Executa uma passagem de reconciliação numa sessão própria."""
        now = now or utcnow()
        db = self.session_factory()
        try:
            report = await self.orchestrator.reconcile_all(db, now)
        finally:
            db.close()
        
        self.last_report = report
        self.last_run_at = now
        return report
    
    async def _job(self):
        try:
            await self.run_once()
        except Exception as e:
            logger.error(f"Erro no sweep de reconciliação: {e}")
    
    def start(self, run_now: bool = True):
        """
        Regista o job periódico no scheduler.
        
        A primeira passagem corre de imediato para fechar slots que ficaram
        live ou paused enquanto o serviço esteve parado.
        """
        SchedulerManager.add_interval_job(self._job, self.interval_seconds, JOB_ID, run_now=run_now)
        self.running = True
        logger.info(f"Reconciliation worker iniciado (a cada {self.interval_seconds}s)")
    
    def stop(self):
        """Remove o job periódico."""
        SchedulerManager.remove_job(JOB_ID)
        self.running = False
        logger.info("Reconciliation worker parado")


# Instância global
reconciliation_worker = ReconciliationWorker(media_transport)
