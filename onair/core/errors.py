"""
Exceções de domínio do ciclo de vida dos slots de broadcast.

Os serviços levantam estas exceções; as rotas convertem-nas em HTTPException
através de `to_http_exception`.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


def format_time(value: datetime) -> str:
    """Hora legível para mensagens ao utilizador (ex.: 20:59)."""
    return value.strftime("%H:%M")


class BroadcastError(Exception):
    """Erro base do domínio de broadcast."""
    
    code = "broadcast_error"
    http_status = status.HTTP_400_BAD_REQUEST
    
    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra
    
    def to_detail(self) -> Dict[str, Any]:
        """Detalhe serializável para a resposta HTTP."""
        detail: Dict[str, Any] = {"code": self.code, "message": self.message}
        for key, value in self.extra.items():
            detail[key] = value.isoformat() if isinstance(value, datetime) else value
        return detail


# Autorização

class InvalidToken(BroadcastError):
    code = "invalid_token"
    http_status = status.HTTP_404_NOT_FOUND
    
    def __init__(self):
        super().__init__("Link de broadcast inválido")


class TokenExpired(BroadcastError):
    code = "token_expired"
    http_status = status.HTTP_410_GONE
    
    def __init__(self, expired_at: datetime):
        super().__init__("O seu link de broadcast expirou", expired_at=expired_at)
        self.expired_at = expired_at


# Janela de tempo

class NotYetOpen(BroadcastError):
    code = "not_yet_open"
    http_status = status.HTTP_425_TOO_EARLY
    
    def __init__(self, opens_at: datetime):
        super().__init__(
            f"GO LIVE disponível às {format_time(opens_at)}",
            opens_at=opens_at
        )
        self.opens_at = opens_at


class WindowClosed(BroadcastError):
    code = "window_closed"
    http_status = status.HTTP_410_GONE
    
    def __init__(self, closed_at: datetime):
        super().__init__(
            f"O seu slot terminou às {format_time(closed_at)}",
            closed_at=closed_at
        )
        self.closed_at = closed_at


# Conflito de estado

class InvalidTransition(BroadcastError):
    code = "invalid_transition"
    http_status = status.HTTP_409_CONFLICT
    
    def __init__(self, current: str, target: str):
        super().__init__(
            f"Transição inválida: {current} -> {target}",
            current=current,
            target=target
        )
        self.current = current
        self.target = target


class AlreadyLive(BroadcastError):
    code = "already_live"
    http_status = status.HTTP_409_CONFLICT
    
    def __init__(self, claimed_by: Optional[str]):
        super().__init__("Este slot já está live", claimed_by=claimed_by)
        self.claimed_by = claimed_by


# Transporte de media

class TransportUnavailable(BroadcastError):
    code = "transport_unavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    
    def __init__(self, operation: str = "request"):
        # A operação fica apenas para logs; nunca vai para o cliente
        super().__init__("Erro temporário no servidor de áudio. Tente novamente.")
        self.operation = operation


# Recursos

class SlotNotFound(BroadcastError):
    code = "slot_not_found"
    http_status = status.HTTP_404_NOT_FOUND
    
    def __init__(self):
        super().__init__("Slot de broadcast não encontrado")


class DJSlotNotFound(BroadcastError):
    code = "dj_slot_not_found"
    http_status = status.HTTP_404_NOT_FOUND
    
    def __init__(self):
        super().__init__("Slot de DJ não encontrado")


class InvalidLineup(BroadcastError):
    code = "invalid_lineup"
    http_status = status.HTTP_400_BAD_REQUEST


class InvalidContent(BroadcastError):
    code = "invalid_content"
    http_status = status.HTTP_400_BAD_REQUEST


def to_http_exception(exc: BroadcastError) -> HTTPException:
    """Converte um erro de domínio numa HTTPException."""
    return HTTPException(status_code=exc.http_status, detail=exc.to_detail())
