"""
Módulo core com configurações, banco de dados, relógio, erros e segurança.
"""
from onair.core.config import settings
from onair.core.database import Base, engine, get_db
from onair.core.clock import utcnow
from onair.core.security import (
    create_access_token,
    decode_token,
    get_current_user
)

__all__ = [
    "settings",
    "Base",
    "engine",
    "get_db",
    "utcnow",
    "create_access_token",
    "decode_token",
    "get_current_user"
]
