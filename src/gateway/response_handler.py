"""
Response Handler Processor - Delivers replies through the platform with chunking.

Features:
- Human-like typing delay proportional to reply length
- Message chunking for long responses
- Platform failures are logged, never raised
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from .base_processor import BaseProcessor, MessageContext
from .config import GatewayConfig
from .models import DispatchResult
from .platform import PlatformActions, run_platform_action

TYPING_BASE_DELAY = 0.8
TYPING_PER_CHAR = 0.025
TYPING_MAX_CHAR_DELAY = 3.0


def calculate_typing_delay(response_length: int) -> float:
    """Base delay plus a per-character delay, capped"""
    return TYPING_BASE_DELAY + min(response_length * TYPING_PER_CHAR, TYPING_MAX_CHAR_DELAY)


class ResponseHandler(BaseProcessor):
    """
    Processor that sends replies to a conversation.

    Manages typing delays and message chunking.
    """

    def __init__(self, platform: Optional[PlatformActions], config: Optional[GatewayConfig] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        super().__init__("response_handler", config)
        self.platform = platform
        self.sleep = sleep

        self.chunk_size = self.config.reply_chunk_size
        self.response_delay_enabled = self.config.typing_delay_enabled

    async def deliver(self, conversation_id: str, response_content: str,
                      reply_to: Optional[str] = None, typing_delay: bool = True) -> bool:
        """
        Send a reply with an optional typing delay and chunking.

        Returns:
            True if every chunk was sent, False otherwise
        """
        if not response_content or not response_content.strip():
            self.logger.warning("Attempted to send empty response")
            return False
        if self.platform is None:
            self.logger.warning("No platform configured, dropping reply")
            return False

        if typing_delay and self.response_delay_enabled:
            delay = calculate_typing_delay(len(response_content))
            self.logger.debug(f"Applying typing delay: {delay:.1f}s")
            await self.sleep(delay)

        sent_all = True
        for i, chunk in enumerate(self._chunk_message(response_content)):
            if i > 0:
                # Small delay between chunks
                await self.sleep(0.5)
            sent = await run_platform_action(
                "send_reply", conversation_id,
                self.platform.send_reply(conversation_id, chunk, reply_to if i == 0 else None),
            )
            sent_all = sent_all and sent
        return sent_all

    def _chunk_message(self, content: str) -> List[str]:
        """
        Split message into chunks at natural breakpoints.
        Tries to split at newlines to preserve formatting.
        """
        if len(content) <= self.chunk_size:
            return [content]

        chunks = []
        current_chunk = ""

        # Split by lines first to preserve formatting
        for line in content.splitlines(keepends=True):
            # If this line alone is too long, split it by words
            if len(line) > self.chunk_size:
                if current_chunk:
                    chunks.append(current_chunk.rstrip())
                    current_chunk = ""

                current_line = ""
                for word in line.split(" "):
                    if len(current_line + word) > self.chunk_size:
                        if current_line:
                            chunks.append(current_line.rstrip())
                            current_line = ""
                        if len(word) > self.chunk_size:
                            # Single word too long, hard split
                            word = word.rstrip()
                            chunks.extend(word[i:i + self.chunk_size] for i in range(0, len(word), self.chunk_size))
                        else:
                            current_line = word + " "
                    else:
                        current_line += word + " "

                if current_line:
                    current_chunk = current_line

            # Check if adding this line would exceed chunk size
            elif len(current_chunk + line) > self.chunk_size:
                chunks.append(current_chunk.rstrip())
                current_chunk = line
            else:
                current_chunk += line

        if current_chunk.strip():
            chunks.append(current_chunk.rstrip())

        return [chunk for chunk in chunks if chunk]

    async def process(self, context: MessageContext) -> Optional[DispatchResult]:
        reply = context.get_data("reply")
        if reply:
            await self.deliver(context.conversation_id, reply, context.event.message_id)
        return None
