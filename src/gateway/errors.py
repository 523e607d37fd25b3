"""
Error taxonomy for the dispatch gateway.

None of these are fatal: the gateway catches every one of them and degrades to
silence or a short localized apology.
"""

from typing import Optional


class ProcessorError(Exception):
    """Base exception for processor errors"""

    def __init__(self, processor_name: str, message: str, original_error: Optional[Exception] = None):
        self.processor_name = processor_name
        self.original_error = original_error
        super().__init__(f"[{processor_name}] {message}")


class TransientProviderError(ProcessorError):
    """Network failure, timeout or non-2xx status from one provider. Advance to the next provider."""

    def __init__(self, provider_id: str, message: str, original_error: Optional[Exception] = None):
        self.provider_id = provider_id
        super().__init__(f"provider.{provider_id}", message, original_error)


class EmptyCompletion(TransientProviderError):
    """Provider answered but the trimmed text was empty."""

    def __init__(self, provider_id: str):
        super().__init__(provider_id, "Empty completion")


class ChainExhausted(ProcessorError):
    """Every configured provider failed for a request."""

    def __init__(self, attempted: int):
        self.attempted = attempted
        super().__init__("provider_chain", f"All {attempted} providers failed")


class PlatformActionFailure(ProcessorError):
    """Delete, remove or send failed at the platform boundary."""

    def __init__(self, action: str, conversation_id: str, original_error: Optional[Exception] = None):
        self.action = action
        self.conversation_id = conversation_id
        super().__init__("platform", f"{action} failed in {conversation_id}: {original_error}", original_error)


class PrivilegedActorProtection(ProcessorError):
    """Removal of an owner or administrator was attempted and refused."""

    def __init__(self, conversation_id: str, actor_id: str, role: str):
        self.conversation_id = conversation_id
        self.actor_id = actor_id
        self.role = role
        super().__init__("moderation", f"Refusing to remove {role} {actor_id} from {conversation_id}")
