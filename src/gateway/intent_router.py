"""
Intent Router - deterministic intents that never need a model call.

route() is a pure function of the message text: action triggers first, then
topic keyword sets, else NEEDS_COMPLETION. is_addressed() decides whether a
NEEDS_COMPLETION message in a group is meant for the assistant at all.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Pattern, Tuple


class Intent(str, Enum):
    PLAY_MUSIC = "play_music"
    WEATHER = "weather"
    GENERATE_IMAGE = "generate_image"
    TRANSLATE = "translate"
    JOKE = "joke"
    QUOTE = "quote"
    CONTACT = "contact"
    NEEDS_COMPLETION = "needs_completion"


@dataclass(frozen=True)
class RoutedIntent:
    intent: Intent
    argument: Optional[str] = None
    target: Optional[str] = None

    @property
    def needs_completion(self) -> bool:
        return self.intent == Intent.NEEDS_COMPLETION


MUSIC_PATTERNS = [
    re.compile(r"^play\s+(?:song\s+|me\s+|this\s+)?(.+)", re.IGNORECASE),
    re.compile(r"^(?:song|music)\s+play\s+(.+)", re.IGNORECASE),
    re.compile(r"^(.+)\s+song\s+play$", re.IGNORECASE),
    re.compile(r"^i\s+want\s+to\s+listen\s+(?:to\s+)?(.+)", re.IGNORECASE),
    re.compile(r"^gaan\s+baja\s+(.+)", re.IGNORECASE),
    re.compile(r"^(.+)\s+(?:gaan|song)\s+chai$", re.IGNORECASE),
]

WEATHER_PATTERNS = [
    re.compile(r"what'?s?\s+the\s+weather\s+(?:in|of|at)\s+(.+)", re.IGNORECASE),
    re.compile(r"how'?s?\s+the\s+weather\s+(?:in|of|at)\s+(.+)", re.IGNORECASE),
    re.compile(r"^weather\s+(?:in|of|at)\s+(.+)", re.IGNORECASE),
    re.compile(r"^weather\s+(.+)", re.IGNORECASE),
    re.compile(r"^(?!.*\bthe\s+weather)(.+?)\s+(?:er\s+)?weather\??$", re.IGNORECASE),
    re.compile(r"^temperature\s+(?:in\s+)?(.+)", re.IGNORECASE),
]

IMAGE_PATTERNS = [
    re.compile(r"(?:generate|create)(?:\s+image)?\s*:\s*(.+)", re.IGNORECASE),
    re.compile(r"^draw(?:\s+me)?\s*:?\s+(.+)", re.IGNORECASE),
    re.compile(r"make\s+an?\s+image\s+of\s+(.+)", re.IGNORECASE),
    re.compile(r"generate\s+a\s+picture\s+of\s+(.+)", re.IGNORECASE),
    re.compile(r"^image\s+of\s+(.+)", re.IGNORECASE),
]

TRANSLATE_PATTERNS = [
    re.compile(r"^translate\s+(?:to|into)\s+(\w+)\s*:\s*(.+)", re.IGNORECASE | re.DOTALL),
]

JOKE_KEYWORDS = re.compile(r"\b(?:joke|jokes|funny|laugh)\b", re.IGNORECASE)
QUOTE_KEYWORDS = re.compile(r"\b(?:quote|quotes|inspiration|inspire|motivat\w*|wisdom)\b", re.IGNORECASE)
CONTACT_KEYWORDS = re.compile(r"\b(?:contact|portfolio|github|whatsapp|email|reach you|connect with)\b", re.IGNORECASE)


def _first_match(patterns: Iterable[Pattern], text: str) -> Optional[Tuple[str, ...]]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return tuple(group.strip() for group in match.groups())
    return None


def route(content: str) -> RoutedIntent:
    """Classify a message. First match wins."""
    text = (content or "").strip()
    if not text:
        return RoutedIntent(Intent.NEEDS_COMPLETION)

    match = _first_match(MUSIC_PATTERNS, text)
    if match and match[0]:
        return RoutedIntent(Intent.PLAY_MUSIC, match[0])

    match = _first_match(WEATHER_PATTERNS, text)
    if match:
        city = match[0].replace("?", "").strip()
        if 1 < len(city) < 50:
            return RoutedIntent(Intent.WEATHER, city)

    match = _first_match(IMAGE_PATTERNS, text)
    if match and match[0]:
        return RoutedIntent(Intent.GENERATE_IMAGE, match[0])

    match = _first_match(TRANSLATE_PATTERNS, text)
    if match:
        return RoutedIntent(Intent.TRANSLATE, match[1], target=match[0].lower())

    if JOKE_KEYWORDS.search(text):
        return RoutedIntent(Intent.JOKE)
    if QUOTE_KEYWORDS.search(text):
        return RoutedIntent(Intent.QUOTE)
    if CONTACT_KEYWORDS.search(text):
        return RoutedIntent(Intent.CONTACT)

    return RoutedIntent(Intent.NEEDS_COMPLETION)


class IntentRouter:
    """Wraps route() with the assistant's name and brand keywords for addressing checks."""

    def __init__(self, bot_name: str = "", brand_keywords: Optional[List[str]] = None,
                 name_variants: Optional[List[str]] = None):
        self.bot_name = bot_name
        self.brand_keywords = [k.lower() for k in (brand_keywords or []) if k]
        self.name_variants = [n.lower() for n in [bot_name, *(name_variants or [])] if n]

    def route(self, content: str) -> RoutedIntent:
        return route(content)

    def is_addressed(self, content: str, extra_keywords: Optional[List[str]] = None) -> bool:
        """Check if a group message is directed at the assistant"""
        content_lower = (content or "").lower()

        # Name variants
        if any(variant in content_lower for variant in self.name_variants):
            return True

        # Questions
        if "?" in content_lower:
            return True

        # Brand/service keywords, whole words only
        keywords = self.brand_keywords + [k.lower() for k in (extra_keywords or []) if k]
        words = set(re.findall(r"\w+", content_lower))
        return any(keyword in words if " " not in keyword else keyword in content_lower for keyword in keywords)
