"""
Base processor class for the gateway dispatch pipeline.

Provides common interface and utilities for all processors.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .config import GatewayConfig
from .errors import ProcessorError
from .models import DispatchResult, MessageEvent


class MessageContext:
    """
    Standardized context object passed between processors.
    Contains the inbound event plus anything processors learn about it.
    """

    def __init__(self, event: MessageEvent, bot_name: str = ""):
        self.event = event

        # Basic message info
        self.content = event.content or ""
        self.conversation_id = event.conversation_id
        self.actor_id = event.actor_id
        self.actor_key = event.actor_key
        self.sender_role = event.sender_role

        # Processed content (without leading bot-name address)
        self.bot_name = bot_name
        self.clean_content = self._clean_content()

        # Extensible data store for processors to add information
        self.data: Dict[str, Any] = {}

    def _clean_content(self) -> str:
        """Remove @bot mentions from message content"""
        content = self.content
        if self.bot_name:
            content = content.replace(f"@{self.bot_name}", "")
        return content.strip()

    def set_data(self, key: str, value: Any) -> None:
        """Store processor-specific data"""
        self.data[key] = value

    def get_data(self, key: str, default: Any = None) -> Any:
        """Retrieve processor-specific data"""
        return self.data.get(key, default)


class BaseProcessor(ABC):
    """
    Abstract base class for all gateway processors.

    Processors should:
    1. Keep mutable state in the StateStore, not on themselves
    2. Have clear input/output contracts
    3. Read their settings from the injected GatewayConfig
    4. Include proper error handling and logging
    """

    def __init__(self, name: str, config: Optional[GatewayConfig] = None):
        self.name = name
        self.config = config or GatewayConfig()
        self.logger = logging.getLogger(f"processor.{name}")
        self.enabled = self._is_enabled()

        if self.enabled:
            self.logger.info(f"{name} processor initialized")

    def _is_enabled(self) -> bool:
        """
        Check if this processor is enabled.
        Default: check environment variable {PROCESSOR_NAME}_ENABLED
        """
        env_var = f"{self.name.upper()}_ENABLED"
        return os.getenv(env_var, "true").lower() == "true"

    @abstractmethod
    async def process(self, context: MessageContext) -> Optional[DispatchResult]:
        """
        Process the message context.

        Returns:
            None to let the message continue down the pipeline, or a
            DispatchResult that stops it here.

        Raises:
            ProcessorError: When processing fails
        """
        pass

    def is_enabled(self) -> bool:
        """Check if processor is enabled"""
        return self.enabled


class ProcessorPipeline:
    """
    Runs gate processors in order and stops at the first one that returns a result.
    A processor that fails is logged and skipped, so gates fail open.
    """

    def __init__(self):
        self.processors: List[BaseProcessor] = []
        self.logger = logging.getLogger("processor.pipeline")

    def add_processor(self, processor: BaseProcessor) -> None:
        """Add a processor to the pipeline"""
        if processor.is_enabled():
            self.processors.append(processor)
            self.logger.info(f"Added {processor.name} processor to pipeline")
        else:
            self.logger.info(f"Skipped disabled processor: {processor.name}")

    async def process(self, context: MessageContext) -> Optional[DispatchResult]:
        """
        Run processors in sequence until one stops the message.

        Returns:
            The stopping processor's DispatchResult, or None if every gate passed
        """
        for processor in self.processors:
            try:
                result = await processor.process(context)
            except ProcessorError as e:
                self.logger.error(f"Processor error: {e}")
                continue
            except Exception as e:
                self.logger.error(f"Unexpected error in {processor.name}: {e}")
                continue

            if result is not None:
                self.logger.debug(f"{processor.name} stopped message: {result.outcome.value} ({result.reason})")
                context.set_data("stopped_by", processor.name)
                return result

        return None
