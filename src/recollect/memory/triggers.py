"""
Trigger detection - phrase heuristics that spot things worth remembering.

Case-insensitive substring matching only. A message can trip more than
one trigger type, but each type is reported at most once.
"""

from dataclasses import dataclass
from enum import Enum

from recollect.memory.base import Category
from recollect.memory.formation import FormationIntent


class TriggerType(Enum):
    EXPLICIT = "explicit"  # "remember that ..."
    PREFERENCE = "preference"
    CORRECTION = "correction"


@dataclass(frozen=True)
class Trigger:
    type: TriggerType
    phrase: str  # The phrase that matched
    category: Category
    confidence: float


EXPLICIT_PHRASES = (
    "remember that",
    "remember this",
    "keep in mind",
    "note that",
    "don't forget",
    "for future reference",
)

PREFERENCE_PHRASES = (
    "i prefer",
    "i like",
    "always use",
    "never use",
    "don't use",
    "i always",
    "i never",
)

CORRECTION_PHRASES = (
    "no,",
    "actually",
    "that's wrong",
    "that's not right",
    "i meant",
    "instead",
    "not quite",
)

# (type, phrases, suggested category, confidence), checked in this order
RULES = (
    (TriggerType.EXPLICIT, EXPLICIT_PHRASES, Category.FACT, 0.9),
    (TriggerType.PREFERENCE, PREFERENCE_PHRASES, Category.PREFERENCE, 0.7),
    (TriggerType.CORRECTION, CORRECTION_PHRASES, Category.CORRECTION, 0.8),
)


def detect_triggers(message: str) -> list[Trigger]:
    """Return the triggers found in a message, at most one per type."""
    text = message.lower()
    triggers = []
    for trigger_type, phrases, category, confidence in RULES:
        for phrase in phrases:
            if phrase in text:
                triggers.append(Trigger(trigger_type, phrase, category, confidence))
                break
    return triggers


def intent_from_message(
    message: str,
    agent_handle: str | None = None,
    path_scope: str | None = None,
    source_session_id: str | None = None,
    source_message_id: str | None = None,
) -> FormationIntent | None:
    """Build a formation intent from the strongest trigger, if any.

    An explicit "remember" takes the category a co-occurring preference or
    correction trigger suggests ("remember that I prefer X" is a preference).
    """
    triggers = detect_triggers(message)
    if not triggers:
        return None

    strongest = max(triggers, key=lambda t: t.confidence)
    category = strongest.category
    if strongest.type is TriggerType.EXPLICIT:
        others = [t for t in triggers if t.type is not TriggerType.EXPLICIT]
        if others:
            category = max(others, key=lambda t: t.confidence).category

    return FormationIntent(
        content=message.strip(),
        category=category,
        agent_handle=agent_handle,
        path_scope=path_scope,
        source_session_id=source_session_id,
        source_message_id=source_message_id,
    )
