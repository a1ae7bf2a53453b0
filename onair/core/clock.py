"""
Relógio do sistema.

Todas as decisões de estado recebem `now` como parâmetro; apenas as rotas
(pedido do cliente) e o worker de reconciliação leem o relógio real.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Retorna o instante atual em UTC (naive, como gravado no banco)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
