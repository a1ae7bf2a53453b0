"""
Módulo workers com tarefas em background.
"""
from onair.workers.reconciliation_worker import ReconciliationWorker

__all__ = [
    "ReconciliationWorker"
]
