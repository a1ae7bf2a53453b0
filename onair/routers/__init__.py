"""
Módulo routers com as rotas da API.
"""
from onair.routers import broadcast, venues, slots, recordings, webhooks

__all__ = ["broadcast", "venues", "slots", "recordings", "webhooks"]
