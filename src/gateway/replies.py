"""
Canned and templated reply texts.

Everything the gateway can say without a model call lives here: localized
apologies, jokes, quotes, the contact card and moderation notices.
"""

import random
import time
from typing import Optional

from .brand import BrandContext
from .models import Language

FALLBACK_RESPONSES = {
    Language.BANGLA: "Dukkito, ekhon ektu problem hochhe. {owner} ke directly message korun.",
    Language.HINDI: "Maaf kijiye, abhi thodi takleef ho rahi hai. {owner} ko directly message karein.",
    Language.ENGLISH: "Sorry, I'm having a small issue right now. Please contact {owner} directly.",
}

JOKES = [
    "A programmer's wife tells him: 'Go to the store and buy a loaf of bread. If they have eggs, buy a dozen.' He never came back because they had eggs! 😂",
    "Why do Java developers wear glasses? Because they don't C#! 😄",
    "How many programmers does it take to change a light bulb? None, that's a hardware problem! 💻",
    "Why did the developer go broke? Because he lost his cache! 😂",
    "A SQL query walks into a bar, walks up to two tables and asks... 'Can I join you?' 🍺",
    "Why do programmers prefer dark mode? Because light attracts bugs! 🐛",
    "Why did the developer go to jail? He had too many unresolved issues! ⚖️",
]

QUOTES = [
    "The only way to do great work is to love what you do. - Steve Jobs",
    "Innovation distinguishes between a leader and a follower. - Steve Jobs",
    "Life is what happens when you're busy making other plans. - John Lennon",
    "The future belongs to those who believe in the beauty of their dreams. - Eleanor Roosevelt",
    "It is during our darkest moments that we must focus to see the light. - Aristotle",
    "The only impossible journey is the one you never begin. - Tony Robbins",
    "Success is not final, failure is not fatal. - Winston Churchill",
    "Believe you can and you're halfway there. - Theodore Roosevelt",
    "The best time to plant a tree was 20 years ago. The second best time is now. - Chinese Proverb",
    "Your time is limited, don't waste it living someone else's life. - Steve Jobs",
]


def fallback_response(language: Optional[Language], owner_name: str = "the owner") -> str:
    template = FALLBACK_RESPONSES.get(language or Language.ENGLISH, FALLBACK_RESPONSES[Language.ENGLISH])
    return template.format(owner=owner_name)


def random_joke() -> str:
    return f"😂 {random.choice(JOKES)}"


def quote_of_the_day(now: Optional[float] = None) -> str:
    day_of_year = time.localtime(now if now is not None else time.time()).tm_yday
    return f"💡 Quote of the Day:\n\n\"{QUOTES[day_of_year % len(QUOTES)]}\""


def contact_card(brand: BrandContext) -> str:
    lines = [f"📞 Connect with {brand.owner_name}:"]
    labels = {
        "telegram": "💬 Telegram",
        "github": "🐙 GitHub",
        "whatsapp": "💬 WhatsApp",
        "email": "📧 Email",
        "portfolio": "🌐 Portfolio",
        "youtube": "▶️ YouTube",
    }
    for key, label in labels.items():
        value = brand.contact_links.get(key)
        if value:
            lines.append(f"{label}: {value}")
    if len(lines) == 1:
        lines.append("Just leave a message here and they'll get back to you.")
    return "\n".join(lines)


def music_request(song: str) -> str:
    return f"🎵 Music Request Detected!\n\nNow playing: {song}\n\n/play {song}"


def weather_request(city: str) -> str:
    return f"🌤️ Checking the weather for {city.title()}... weather lookups are not configured right now."


def image_request(prompt: str) -> str:
    return f"🖼️ Image generation for \"{prompt}\" is not configured right now. Please contact the admin."


def translation_request(language: str, text: str) -> str:
    return f"🌐 Translation to {language} is not configured right now."


def warning_notice(count: int, ceiling: int, reason: str) -> str:
    return f"⚠️ Warning ({count}/{ceiling})\n\nReason: {reason}\n\nBe careful!"


def removal_notice(count: int) -> str:
    return f"🚫 User removed for exceeding warning limit ({count} warnings)"
