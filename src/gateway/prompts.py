"""
Prompt construction for provider requests.

The system prompt is persona/brand instructions + a language directive + a
length constraint. It is built once per request and sent unchanged to every
provider in the chain.
"""

from typing import Optional

from .brand import BrandContext
from .models import Language

LANGUAGE_DIRECTIVES = {
    Language.BANGLA: (
        "You MUST respond in BANGLISH (Bengali written with English letters). "
        "Do NOT use Bengali script. Example: \"Apnake kivabe sahajjo korte pari?\""
    ),
    Language.HINDI: (
        "You MUST respond in Romanized Hindi (Hindi written with English letters). "
        "Example: \"Kaise hain aap? Main aapki kya madad kar sakta hoon?\""
    ),
    Language.ENGLISH: "You will respond in English.",
}

DEFAULT_LANGUAGE_DIRECTIVE = "Respond in the same language the user wrote in."

LENGTH_CONSTRAINT = "Keep responses SHORT (1-3 sentences maximum, under 600 characters)."


def language_directive(language: Optional[Language]) -> str:
    return LANGUAGE_DIRECTIVES.get(language, DEFAULT_LANGUAGE_DIRECTIVE)


def build_system_prompt(brand: BrandContext, language: Optional[Language] = None) -> str:
    return f"""You are a smart, human-like digital assistant for {brand.owner_name}.

Your role:
- Assist potential clients and group members in a friendly, human-like manner.
- Explain services and products clearly and concisely.
- NEVER sound robotic. NEVER say you are an AI unless directly asked.
- Redirect sales confirmations to {brand.owner_name}.
- If you don't know something, say you'll check and they can contact {brand.owner_name} directly.

{language_directive(language)}

{LENGTH_CONSTRAINT}"""


def build_user_prompt(message: str, brand: BrandContext, catalog: str = "", actor_context: str = "") -> str:
    """Wrap the user's message with brand memory, catalog and the actor's last exchange"""
    return f"""Brand Memory:
{brand.formatted()}

Available Products/Services:
{catalog or 'No catalog available.'}

User's previous conversation context: {actor_context or 'First interaction'}

User's current message: {message}

Respond naturally and helpfully. Keep it brief and human-like.""".strip()


def summarize_exchange(message: str, reply: str) -> str:
    return f"{message[:100]} -> {reply[:100]}"
