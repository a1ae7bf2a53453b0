"""
Media Transport - cliente do servidor de media (API Twirp compatível com LiveKit).

Admite sessões de DJ numa sala, remove participantes e inicia/para egresses
de gravação. O estado do slot nunca é alterado aqui.
"""
import asyncio
import base64
import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Dict, Optional, TypeVar
import httpx
from jose import JWTError, jwt
from onair.core.clock import utcnow
from onair.core.config import settings
from onair.core.errors import TransportUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SessionRef:
    """Referência de uma sessão admitida no servidor de media."""
    room: str
    identity: str
    token: str
    url: str


class MediaTransport(ABC):
    """Contrato do transporte de media consumido pelo orquestrador."""
    
    @abstractmethod
    async def admit_session(self, room: str, identity: str, name: Optional[str] = None) -> SessionRef:
        """Garante a sala e emite a credencial de publicação do DJ."""
    
    @abstractmethod
    async def remove_participant(self, room: str, identity: str) -> None:
        """Desliga um participante da sala."""
    
    @abstractmethod
    async def start_egress(self, room: str, filepath: str) -> str:
        """Inicia gravação da sala e retorna o egress_id."""
    
    @abstractmethod
    async def stop_egress(self, egress_id: str) -> None:
        """Para um egress em curso."""


class LiveKitTransport(MediaTransport):
    """Implementação sobre HTTP (Twirp JSON) com tokens JWT assinados localmente."""
    
    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_secret: str,
        timeout: float = 10.0,
        token_ttl_minutes: int = 60
    ):
        self.base_url = base_url.replace("wss://", "https://").replace("ws://", "http://").rstrip("/")
        self.ws_url = base_url
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout
        self.token_ttl_minutes = token_ttl_minutes
        
        # Reduzir ruído do httpx (pedidos frequentes)
        logging.getLogger("httpx").setLevel(logging.WARNING)
    
    def _sign(self, claims: Dict[str, Any], ttl: timedelta) -> str:
        now = utcnow()
        payload = {
            "iss": self.api_key,
            "nbf": now,
            "exp": now + ttl,
            **claims
        }
        return jwt.encode(payload, self.api_secret, algorithm="HS256")
    
    def create_join_token(self, room: str, identity: str, name: Optional[str] = None) -> str:
        """Token de acesso do DJ: entrar na sala e publicar áudio."""
        claims = {
            "sub": identity,
            "name": name or identity,
            "video": {
                "room": room,
                "roomJoin": True,
                "canPublish": True,
                "canSubscribe": True
            }
        }
        return self._sign(claims, timedelta(minutes=self.token_ttl_minutes))
    
    def _service_token(self, room: Optional[str] = None) -> str:
        video: Dict[str, Any] = {"roomCreate": True, "roomAdmin": True, "roomRecord": True}
        if room:
            video["room"] = room
        return self._sign({"video": video}, timedelta(minutes=5))
    
    async def _twirp(self, service: str, method: str, payload: Dict[str, Any],
                     room: Optional[str] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/twirp/livekit.{service}/{method}"
        headers = {"Authorization": f"Bearer {self._service_token(room)}"}
        
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                return response.json() if response.content else {}
        except httpx.HTTPError as e:
            logger.warning(f"[TRANSPORT] Falha em {service}/{method}: {e}")
            raise TransportUnavailable(f"{service}/{method}") from e
    
    async def admit_session(self, room: str, identity: str, name: Optional[str] = None) -> SessionRef:
        await self._twirp("RoomService", "CreateRoom", {"name": room}, room=room)
        token = self.create_join_token(room, identity, name)
        logger.info(f"[TRANSPORT] Sessão admitida: {identity} -> {room}")
        return SessionRef(room=room, identity=identity, token=token, url=self.ws_url)
    
    async def remove_participant(self, room: str, identity: str) -> None:
        await self._twirp(
            "RoomService",
            "RemoveParticipant",
            {"room": room, "identity": identity},
            room=room
        )
        logger.info(f"[TRANSPORT] Participante removido: {identity} ({room})")
    
    async def start_egress(self, room: str, filepath: str) -> str:
        file_output: Dict[str, Any] = {"file_type": "MP4", "filepath": filepath}
        if settings.recording_bucket:
            file_output["s3"] = {
                "access_key": settings.recording_s3_access_key,
                "secret": settings.recording_s3_secret_key,
                "bucket": settings.recording_bucket,
                "region": "auto",
                "endpoint": settings.recording_s3_endpoint,
                "force_path_style": True
            }
        
        info = await self._twirp(
            "Egress",
            "StartRoomCompositeEgress",
            {"room_name": room, "audio_only": True, "file_outputs": [file_output]},
            room=room
        )
        egress_id = info.get("egress_id") or info.get("egressId")
        if not egress_id:
            raise TransportUnavailable("Egress/StartRoomCompositeEgress")
        
        logger.info(f"[TRANSPORT] Egress iniciado: {egress_id} ({room})")
        return egress_id
    
    async def stop_egress(self, egress_id: str) -> None:
        await self._twirp("Egress", "StopEgress", {"egress_id": egress_id})
        logger.info(f"[TRANSPORT] Egress parado: {egress_id}")


# Instância global
media_transport = LiveKitTransport(
    settings.livekit_url,
    settings.livekit_api_key,
    settings.livekit_api_secret,
    timeout=settings.transport_timeout_seconds,
    token_ttl_minutes=settings.session_token_ttl_minutes
)


def get_media_transport() -> MediaTransport:
    """Dependency para obter o transporte de media."""
    return media_transport


async def bounded(awaitable: Awaitable[T], operation: str, timeout: Optional[float] = None) -> T:
    """
    Limita uma chamada ao transporte de media a um timeout.
    
    Raises:
        TransportUnavailable: Se o timeout for atingido
    """
    if timeout is None:
        timeout = settings.transport_timeout_seconds
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"[TRANSPORT] Timeout em {operation} ({timeout}s)")
        raise TransportUnavailable(operation) from e


def verify_webhook(body: bytes, authorization: str, api_key: str, api_secret: str) -> dict:
    """
    Verifica a assinatura de um webhook do servidor de media.
    
    O header Authorization traz um JWT (HS256, segredo da API) emitido pela
    api_key, cujo claim `sha256` é o hash base64 do corpo bruto.
    
    Raises:
        ValueError: Se a assinatura, o emissor ou o hash não corresponderem
    """
    token = authorization[7:] if authorization.lower().startswith("bearer ") else authorization
    if not token:
        raise ValueError("Header Authorization em falta")
    
    try:
        claims = jwt.decode(
            token,
            api_secret,
            algorithms=["HS256"],
            options={"verify_aud": False}
        )
    except JWTError as e:
        raise ValueError("Assinatura de webhook inválida") from e
    
    if claims.get("iss") != api_key:
        raise ValueError("Emissor de webhook desconhecido")
    
    digest = base64.b64encode(hashlib.sha256(body).digest()).decode()
    if claims.get("sha256") != digest:
        raise ValueError("Hash do corpo do webhook não confere")
    return claims
