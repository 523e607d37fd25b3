"""
Brand memory: who the assistant speaks for.

Loaded once from a JSON file at startup and reloaded only through an explicit
admin action (Gateway.reload_brand).
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

PRESENCE_STATUSES = ("online", "busy", "away")


@dataclass
class BrandContext:
    owner_name: str = "the owner"
    about: str = "A professional developer and tech entrepreneur."
    services: List[str] = field(default_factory=list)
    offers: str = ""
    availability: str = "Available for projects and consultations."
    status: str = "away"
    custom_notes: str = ""
    contact_links: Dict[str, str] = field(default_factory=dict)
    keywords: List[str] = field(default_factory=list)

    @property
    def owner_online(self) -> bool:
        return self.status == "online"

    def formatted(self) -> str:
        """Brand memory block for prompts"""
        lines = [f"About {self.owner_name}: {self.about}"]
        if self.services:
            lines.append(f"Services: {', '.join(self.services)}")
        if self.offers:
            lines.append(f"Current Offers: {self.offers}")
        lines.append(f"Availability: {self.availability}")
        lines.append(f"Status: {self.status}")
        if self.custom_notes:
            lines.append(f"Additional Notes: {self.custom_notes}")
        return "\n".join(lines)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BrandContext":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown brand fields: {sorted(unknown)}")
        brand = cls(**{k: v for k, v in data.items() if k in known})
        if brand.status not in PRESENCE_STATUSES:
            logger.warning(f"Unknown presence status '{brand.status}', using 'away'")
            brand.status = "away"
        return brand


class BrandContextHolder:
    """Holds the current BrandContext and reloads it on request."""

    def __init__(self, path: Optional[str] = None, brand: Optional[BrandContext] = None):
        self.path = path
        self.brand = brand or self._load() or BrandContext()

    def _load(self) -> Optional[BrandContext]:
        """Load brand context from JSON file"""
        if not self.path or not os.path.exists(self.path):
            logger.debug(f"Brand file {self.path} not found")
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            brand = BrandContext.from_dict(data)
            logger.info(f"Loaded brand context for {brand.owner_name} from {self.path}")
            return brand
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logger.error(f"Error loading brand context: {e}")
            return None

    def reload(self) -> BrandContext:
        """Re-read the brand file; a missing or broken file keeps the current context."""
        brand = self._load()
        if brand is not None:
            self.brand = brand
        return self.brand

    def set_status(self, status: str) -> None:
        if status not in PRESENCE_STATUSES:
            raise ValueError(f"status must be one of {PRESENCE_STATUSES}")
        self.brand.status = status
        logger.info(f"Owner presence set to {status}")
