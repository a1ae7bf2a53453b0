"""
Aplicação FastAPI principal para slots de broadcast e sessões live de DJs.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from onair.core.config import settings
from onair.core.database import Base, engine
from onair.core.scheduler import SchedulerManager
from onair.routers import broadcast, venues, slots, recordings, webhooks
from onair.workers.reconciliation_worker import reconciliation_worker

# Configurar logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gerencia o ciclo de vida da aplicação.
    Agenda o sweep de reconciliação no startup e remove-o no shutdown.
    """
    # Startup
    logger.info("Iniciando aplicação...")
    
    # Criar tabelas no banco de dados
    Base.metadata.create_all(bind=engine)
    logger.info("Tabelas do banco de dados criadas/verificadas")
    
    # Iniciar scheduler; a primeira passagem do sweep corre de imediato
    SchedulerManager.start()
    reconciliation_worker.start()
    
    yield
    
    # Shutdown
    logger.info("Parando aplicação...")
    
    reconciliation_worker.stop()
    SchedulerManager.shutdown()
    
    logger.info("Aplicação parada")


# Criar aplicação FastAPI
app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version,
    debug=settings.debug,
    lifespan=lifespan
)

# Configurar CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Incluir rotas
app.include_router(broadcast.router)
app.include_router(venues.router)
app.include_router(slots.router)
app.include_router(recordings.router)
app.include_router(webhooks.router)


@app.get("/")
async def root():
    """Endpoint raiz da API."""
    return {
        "message": "Bem-vindo à OnAir Broadcast API",
        "version": settings.api_version,
        "docs": "/docs",
        "openapi": "/openapi.json"
    }


@app.get("/health")
async def health_check():
    """Health check da API."""
    last_run = reconciliation_worker.last_run_at
    return {
        "status": "ok",
        "workers": {
            "reconciliation": reconciliation_worker.running
        },
        "last_reconcile_at": last_run.isoformat() if last_run else None
    }


if __name__ == "__main__":
    import uvicorn
    
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
