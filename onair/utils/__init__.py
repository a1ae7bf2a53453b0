"""
Módulo utils com o cliente do transporte de media e utilitários de URL.
"""
from onair.utils.media_transport import MediaTransport, LiveKitTransport, SessionRef, bounded
from onair.utils.url import normalize_url, validate_hyperlink

__all__ = [
    "MediaTransport",
    "LiveKitTransport",
    "SessionRef",
    "bounded",
    "normalize_url",
    "validate_hyperlink"
]
