"""
Contracts the gateway consumes from the surrounding application.

The gateway never talks to a chat platform directly; the adapter in bot.py
implements PlatformActions for Discord, and JsonFileCatalog serves the
product catalog from a JSON file.
"""

import asyncio
import inspect
import json
import logging
import os
from typing import Any, Awaitable, Dict, List, Optional, Protocol, runtime_checkable

from .errors import PlatformActionFailure

logger = logging.getLogger(__name__)


@runtime_checkable
class PlatformActions(Protocol):
    async def delete_message(self, conversation_id: str, message_id: Optional[str]) -> None: ...

    async def remove_actor(self, conversation_id: str, actor_id: str) -> None: ...

    async def send_reply(self, conversation_id: str, text: str, reply_to: Optional[str] = None) -> None: ...


@runtime_checkable
class CatalogLookup(Protocol):
    def formatted_catalog(self) -> Any:
        """Return catalog text, or an awaitable resolving to it."""
        ...


class JsonFileCatalog:
    """
    Product catalog kept in a JSON file: a list of objects with name, price,
    description and optional features, demo_url and is_active.
    """

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> List[Dict[str, Any]]:
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, list) else data.get("products", [])

    @staticmethod
    def format_product(product: Dict[str, Any]) -> str:
        text = f"{product.get('name', 'Unnamed')} - {product.get('price', 'Ask for price')}\n{product.get('description', '')}"
        if product.get("features"):
            text += f"\nFeatures: {', '.join(product['features'])}"
        if product.get("demo_url"):
            text += f"\nDemo: {product['demo_url']}"
        return text

    async def formatted_catalog(self) -> str:
        if not os.path.exists(self.path):
            return ""
        products = await asyncio.to_thread(self._read)
        active = [p for p in products if p.get("is_active", True)]
        if not active:
            return "No products available at the moment."
        return "\n\n".join(self.format_product(p) for p in active)


async def run_platform_action(action: str, conversation_id: str, call: Awaitable[Any]) -> bool:
    """
    Await a platform side effect, logging failures instead of raising.

    Returns True if the action succeeded.
    """
    try:
        await call
        return True
    except Exception as e:
        failure = PlatformActionFailure(action, conversation_id, e)
        logger.warning(f"⚠️ {failure}")
        return False


async def read_catalog(catalog: Optional[CatalogLookup]) -> str:
    """Fetch catalog text for prompts; a failing catalog yields an empty string."""
    if catalog is None:
        return ""
    try:
        text = catalog.formatted_catalog()
        if inspect.isawaitable(text):
            text = await text
        return text or ""
    except Exception as e:
        logger.error(f"Error reading catalog: {e}")
        return ""
