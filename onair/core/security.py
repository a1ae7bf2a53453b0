"""
Funções de segurança: tokens JWT das contas de utilizador.

As contas são emitidas por um provedor de identidade externo que partilha o
segredo JWT; este serviço apenas verifica os tokens (e emite-os em testes e
ferramentas internas).
"""
from datetime import timedelta
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from onair.core.config import settings
from onair.core.clock import utcnow
import logging

logger = logging.getLogger(__name__)

# Esquema de segurança
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Cria um token JWT de acesso."""
    to_encode = data.copy()
    
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.algorithm
    )
    return encoded_jwt


def decode_token(token: str) -> dict:
    """Decodifica um token JWT."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido ou expirado"
        )


def _user_from_payload(payload: dict) -> dict:
    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido"
        )
    
    return {
        "user_id": user_id,
        "username": payload.get("username"),
        "role": payload.get("role", "dj")
    }


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Dependency para obter o utilizador autenticado a partir do token JWT."""
    payload = decode_token(credentials.credentials)
    return _user_from_payload(payload)


def require_role(required_role: str):
    """Factory para criar uma dependency que verifica o role do utilizador."""
    async def check_role(current_user: dict = Depends(get_current_user)):
        if current_user.get("role") != required_role and current_user.get("role") != "admin":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permissão insuficiente"
            )
        return current_user
    
    return check_role


async def require_admin_or_cron(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security)
):
    """
    Aceita um admin autenticado ou o segredo partilhado do cron externo.
    
    O segredo do cron é comparado antes de tentar decodificar como JWT.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Não autenticado"
        )
    
    if settings.cron_secret and credentials.credentials == settings.cron_secret:
        return {"user_id": "cron", "username": None, "role": "admin"}
    
    user = _user_from_payload(decode_token(credentials.credentials))
    if user["role"] != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permissão insuficiente"
        )
    return user
