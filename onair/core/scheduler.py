"""
APScheduler partilhado pelos jobs periódicos (sweep de reconciliação).
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from datetime import datetime, timezone
from typing import Any, Callable, Optional
import logging

logger = logging.getLogger(__name__)


class SchedulerManager:
    """Dono do AsyncIOScheduler da aplicação e dos jobs de intervalo."""
    
    _instance: Optional[AsyncIOScheduler] = None
    
    @classmethod
    def get_scheduler(cls) -> AsyncIOScheduler:
        """Retorna a instância singleton do scheduler (criada no primeiro uso)."""
        if cls._instance is None:
            # Um sweep atrasado substitui os perdidos e nunca corre em paralelo
            cls._instance = AsyncIOScheduler(
                jobstores={'default': MemoryJobStore()},
                job_defaults={
                    'coalesce': True,
                    'max_instances': 1,
                    'misfire_grace_time': 30
                },
                timezone='UTC'
            )
            logger.info("APScheduler inicializado")
        
        return cls._instance
    
    @classmethod
    def add_interval_job(cls, func: Callable[..., Any], seconds: int, job_id: str, run_now: bool = False):
        """
        Agenda (ou substitui) um job corrido a cada `seconds` segundos.
        
        Com run_now a primeira execução acontece logo que o scheduler arranca.
        """
        options = {}
        if run_now:
            options["next_run_time"] = datetime.now(timezone.utc)
        job = cls.get_scheduler().add_job(
            func,
            "interval",
            seconds=seconds,
            id=job_id,
            replace_existing=True,
            **options
        )
        logger.info(f"Job '{job_id}' agendado a cada {seconds}s")
        return job
    
    @classmethod
    def remove_job(cls, job_id: str) -> bool:
        """Remove um job se existir; retorna True se foi removido."""
        scheduler = cls.get_scheduler()
        if scheduler.get_job(job_id) is None:
            return False
        scheduler.remove_job(job_id)
        logger.info(f"Job '{job_id}' removido")
        return True
    
    @classmethod
    def start(cls):
        """Inicia o scheduler (dentro do event loop da aplicação)."""
        scheduler = cls.get_scheduler()
        if not scheduler.running:
            scheduler.start()
            logger.info("APScheduler iniciado")
    
    @classmethod
    def shutdown(cls):
        """Para o scheduler sem esperar pelos jobs em curso."""
        if cls._instance and cls._instance.running:
            cls._instance.shutdown(wait=False)
            logger.info("APScheduler parado")
