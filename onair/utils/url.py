"""
Utilitários de URL para links de promo e links de broadcast.
"""
from urllib.parse import urlparse

MAX_HYPERLINK_LENGTH = 500


def normalize_url(value: str) -> str:
    """
    Normaliza um link digitado pelo DJ.
    
    Acrescenta https:// quando falta o esquema; não valida o resultado.
    """
    value = value.strip()
    if not value:
        return value
    if "://" not in value:
        return f"https://{value}"
    return value


def validate_hyperlink(value: str) -> str:
    """
    Normaliza e valida um hyperlink de promo.
    
    Raises:
        ValueError: Se o esquema não for http(s), se não houver host ou se
            exceder 500 caracteres
    """
    normalized = normalize_url(value)
    parsed = urlparse(normalized)
    
    if parsed.scheme not in ("http", "https"):
        raise ValueError("Protocolo de URL inválido")
    if not parsed.netloc:
        raise ValueError("Formato de URL inválido")
    if len(normalized) > MAX_HYPERLINK_LENGTH:
        raise ValueError(f"URL muito longa (máx. {MAX_HYPERLINK_LENGTH} caracteres)")
    
    return normalized


def broadcast_url(app_url: str, broadcast_type: str, token: str, venue_slug: str = None) -> str:
    """Link entregue ao DJ: permanente para venue, com token para remote."""
    base = app_url.rstrip("/")
    if broadcast_type == "venue":
        return f"{base}/broadcast/{venue_slug or 'venue'}"
    return f"{base}/broadcast/live?token={token}"
