"""Tests for trigger detection."""

import pytest

from recollect.memory.base import Category
from recollect.memory.triggers import TriggerType, detect_triggers, intent_from_message


@pytest.mark.parametrize(
    "message,expected",
    [
        ("Remember that I prefer TypeScript", 2),  # explicit + preference
        ("I prefer Go over Python", 1),
        ("No, use pnpm instead", 1),
        ("Hello world", 0),
    ],
)
def test_detect_trigger_count(message, expected):
    assert len(detect_triggers(message)) == expected


def test_trigger_details():
    triggers = detect_triggers("REMEMBER THAT the API key lives in vault")
    assert len(triggers) == 1
    trigger = triggers[0]
    assert trigger.type == TriggerType.EXPLICIT
    assert trigger.phrase == "remember that"
    assert trigger.category == Category.FACT
    assert trigger.confidence == 0.9


def test_confidence_weights():
    triggers = {t.type: t.confidence for t in detect_triggers("Actually, I prefer tabs. Remember this")}
    assert triggers == {
        TriggerType.EXPLICIT: 0.9,
        TriggerType.PREFERENCE: 0.7,
        TriggerType.CORRECTION: 0.8,
    }


def test_intent_from_message_none():
    assert intent_from_message("What's the weather like?") is None


def test_intent_explicit_takes_co_trigger_category():
    intent = intent_from_message("Remember that I prefer TypeScript", agent_handle="@coder")
    assert intent is not None
    assert intent.category == Category.PREFERENCE
    assert intent.content == "Remember that I prefer TypeScript"
    assert intent.agent_handle == "@coder"


def test_intent_explicit_alone_is_fact():
    intent = intent_from_message("Note that staging deploys need VPN")
    assert intent.category == Category.FACT


def test_intent_correction():
    intent = intent_from_message("  No, use pnpm instead  ", source_message_id="m7")
    assert intent.category == Category.CORRECTION
    assert intent.content == "No, use pnpm instead"
    assert intent.source_message_id == "m7"
