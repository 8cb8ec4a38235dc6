# conversation.py
# Short-circuits small talk before any planning or tool use happens.

import re

from pydantic import BaseModel

_TAIL = r"[\s\W]*$"

# Order matters only for readability; any match means "conversational".
CONVERSATIONAL_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"^(hi|hello|hey|good morning|good afternoon|good evening)" + _TAIL, re.I),
    re.compile(r"^(help|what can you do|how do you work|what are you)" + _TAIL, re.I),
    re.compile(r"^(how are you|thanks|thank you|goodbye|bye|who are you)" + _TAIL, re.I),
    re.compile(r"^(what is this|what's this|tell me about yourself)" + _TAIL, re.I),
    re.compile(r"^(yes|no|confirm|proceed|continue|go ahead|sample)" + _TAIL, re.I),
    re.compile(r"^(limit|first|top)\s+\d+" + _TAIL, re.I),
)

CONFIRMATION_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"^(yes|confirm|proceed|continue|go ahead)" + _TAIL, re.I),
    re.compile(r"^(no|cancel|stop|abort)" + _TAIL, re.I),
    re.compile(r"^(limit|first|top)\s+\d+" + _TAIL, re.I),
    re.compile(r"^(sample|summary)" + _TAIL, re.I),
)

GREETING_REPLY = (
    "Hello! I'm your intelligent data assistant. I can help you query databases, "
    "create visualizations like tables and charts, and analyze your data. "
    "What would you like to explore today?"
)
CAPABILITIES_REPLY = (
    "I can help you with several things:\n\n"
    "• **Data Queries**: Ask me to show tables, fetch data, or run database queries\n"
    "• **Visualizations**: Create charts, graphs, and visual representations of your data\n"
    "• **Analysis**: Process and analyze information to give you insights\n\n"
    "Just ask me something like 'show me a table' or 'create a chart' and I'll get started!"
)
THANKS_REPLY = (
    "You're welcome! I'm here whenever you need help with data analysis or visualizations."
)
WELLBEING_REPLY = (
    "I'm doing great and ready to help you with your data! What would you like to work on?"
)
IDENTITY_REPLY = (
    "I'm an intelligent data assistant powered by AI. I can connect to various data "
    "sources, run queries, and create visualizations to help you understand your data "
    "better. I'm designed to make data analysis simple and interactive."
)
FAREWELL_REPLY = (
    "Goodbye! Feel free to come back anytime you need help with data analysis or "
    "visualizations."
)
CONFIRMATION_REPLY = (
    "I understand you want to proceed with the operation. Please provide more context "
    "about what you'd like me to do."
)
FALLBACK_REPLY = (
    "I'm here to help you with data analysis and visualizations. You can ask me to show "
    "tables, create charts, or analyze your data. What would you like to do?"
)

# (category, prefix pattern, reply); first match picks the reply.
_REPLY_TABLE: tuple[tuple[str, re.Pattern, str], ...] = (
    ("greeting", re.compile(r"^(hi|hello|hey|good morning|good afternoon|good evening)", re.I), GREETING_REPLY),
    ("help", re.compile(r"^(help|what can you do|how do you work)", re.I), CAPABILITIES_REPLY),
    ("thanks", re.compile(r"^(thanks|thank you)", re.I), THANKS_REPLY),
    ("wellbeing", re.compile(r"^how are you", re.I), WELLBEING_REPLY),
    ("identity", re.compile(r"^(who are you|what are you|what is this|what's this|tell me about)", re.I), IDENTITY_REPLY),
    ("farewell", re.compile(r"^(goodbye|bye)", re.I), FAREWELL_REPLY),
)


class Classification(BaseModel):
    is_conversational: bool
    category: str | None = None
    reply: str | None = None


def is_confirmation(query: str) -> bool:
    text = query.strip()
    return any(pattern.match(text) for pattern in CONFIRMATION_PATTERNS)


def classify(query: str) -> Classification:
    """Decide whether `query` is small talk and, if so, pick the canned reply."""
    text = query.strip()
    if not any(pattern.match(text) for pattern in CONVERSATIONAL_PATTERNS):
        return Classification(is_conversational=False)

    if is_confirmation(text):
        return Classification(
            is_conversational=True, category="confirmation", reply=CONFIRMATION_REPLY
        )

    for category, pattern, reply in _REPLY_TABLE:
        if pattern.match(text):
            return Classification(is_conversational=True, category=category, reply=reply)

    return Classification(is_conversational=True, category="fallback", reply=FALLBACK_REPLY)
