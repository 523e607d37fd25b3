"""
Dispatch logging for the gateway.
Appends dispatch decisions and completion attempts to JSON-lines files for debugging and analysis.
"""
import json
import logging
import os
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from .models import CompletionAttempt, DispatchResult, MessageEvent

logger = logging.getLogger(__name__)


def _append(log_dir: str, filename: str, entry: dict) -> None:
    try:
        os.makedirs(log_dir, exist_ok=True)
        with open(os.path.join(log_dir, filename), "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")
    except OSError as e:
        logger.warning(f"Failed to write {filename}: {e}")


def log_dispatch(event: MessageEvent, result: DispatchResult, log_dir: str = "logs",
                 stopped_by: Optional[str] = None) -> None:
    """
    Log one dispatch decision. Message content is reduced to its length;
    transcripts are not kept.
    """
    entry = {
        "timestamp": datetime.now().isoformat(),
        "type": "dispatch",
        "conversation_id": str(event.conversation_id),
        "actor_id": str(event.actor_id),
        "content_length": len(event.content or ""),
        "outcome": result.outcome.value,
        "action": result.action.value if result.action else None,
        "reason": result.reason,
        "intent": result.intent,
        "stopped_by": stopped_by,
    }
    _append(log_dir, "dispatch.jsonl", entry)


def log_completion_attempts(attempts: List[CompletionAttempt], log_dir: str = "logs",
                            conversation_id: Optional[str] = None) -> None:
    """Log the ordered provider attempts of one completion request"""
    entry = {
        "timestamp": datetime.now().isoformat(),
        "type": "completion",
        "conversation_id": conversation_id,
        "attempts": [
            {**asdict(attempt), "outcome": attempt.outcome.value, "latency": round(attempt.latency, 3)}
            for attempt in attempts
        ],
        "succeeded": any(a.outcome.value == "success" for a in attempts),
    }
    _append(log_dir, "completions.jsonl", entry)
    logger.debug(f"Logged {len(attempts)} completion attempts")
