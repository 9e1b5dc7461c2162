# nlp/intent_classifier.py
"""
Intent Classifier
Maps a raw message to one of a small fixed set of intents using ordered
keyword rules. The first matching rule wins; there is no scoring.
The assistant is search-first, so anything unrecognised is a property search.
"""

import re
from typing import Dict, List, Optional, Tuple

from loguru import logger

from ..schemas.assistant_schemas import IntentResult, IntentType


# Exact command words (whole message)
COMMANDS: Dict[str, IntentType] = {
    "start": IntentType.GREETING,
    "help": IntentType.HELP,
    "menu": IntentType.INFO_REQUEST,
    "search": IntentType.SEARCH_PROPERTY,
    "preferences": IntentType.PREFERENCE_UPDATE,
    "bookings": IntentType.BOOK_TOUR,
    "stop": IntentType.INFO_REQUEST,
}

# General rules, checked in this order
INTENT_RULES: List[Tuple[IntentType, List[str]]] = [
    (IntentType.BOOK_TOUR, [
        "book", "booking", "schedule", "tour", "visit", "appointment", "reserve", "viewing",
    ]),
    (IntentType.HELP, [
        "help", "support", "assist", "problem", "how do i", "what can you do", "commands",
    ]),
    (IntentType.PREFERENCE_UPDATE, [
        "preference", "preferences", "settings", "profile", "my budget",
    ]),
    (IntentType.GREETING, [
        "hello", "hi", "hey", "good morning", "good afternoon", "good evening", "begin",
    ]),
    (IntentType.INFO_REQUEST, [
        "tell me about", "information", "details", "describe",
    ]),
]

COMMAND_CONFIDENCE = 1.0
RULE_CONFIDENCE = 0.8
DEFAULT_CONFIDENCE = 0.5


class IntentClassifier:
    """Rule-based intent classification"""

    def __init__(self, rules: Optional[List[Tuple[IntentType, List[str]]]] = None,
                 commands: Optional[Dict[str, IntentType]] = None):
        self.commands = commands if commands is not None else COMMANDS
        self.rules = [
            (intent, [re.compile(r"\b" + re.escape(keyword) + r"\b") for keyword in keywords])
            for intent, keywords in (rules if rules is not None else INTENT_RULES)
        ]

    def classify(self, text: Optional[str]) -> IntentResult:
        """
        Classify a message.

        Args:
            text: Raw message text (None allowed)

        Returns:
            IntentResult; command is set when the message was a command word
        """
        if not text or not isinstance(text, str) or not text.strip():
            return IntentResult(intent=IntentType.SEARCH_PROPERTY, confidence=0.0)

        message = text.lower().strip()

        command_intent = self.commands.get(message)
        if command_intent is not None:
            logger.debug(f"Command '{message}' -> {command_intent.value}")
            return IntentResult(intent=command_intent, confidence=COMMAND_CONFIDENCE, command=message)

        for intent, patterns in self.rules:
            if any(pattern.search(message) for pattern in patterns):
                logger.debug(f"Intent rule matched: {intent.value}")
                return IntentResult(intent=intent, confidence=RULE_CONFIDENCE)

        return IntentResult(intent=IntentType.SEARCH_PROPERTY, confidence=DEFAULT_CONFIDENCE)


# ============================================
# Global Instance
# ============================================

intent_classifier = IntentClassifier()


def classify_intent(text: Optional[str]) -> IntentType:
    """Classify a message and return only the intent"""
    return intent_classifier.classify(text).intent
