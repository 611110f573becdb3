from __future__ import annotations

import re

from orchestra.models import AutomationTrigger, Classification, Matched, SubTrigger, Unmatched
from orchestra.registry import TriggerRegistry


def normalize(text: str) -> str:
    return " ".join(text.lower().split())


class CommandClassifier:
    """Keyword matcher over the trigger registry.

    The first trigger in registry order with any keyword contained in the
    transcript wins. There is no scoring and no longest-match preference.
    """

    def __init__(self, registry: TriggerRegistry) -> None:
        self._registry = registry

    def classify(self, transcript: str) -> Classification:
        text = normalize(transcript)
        if not text:
            return Unmatched(transcript=transcript)
        for trigger in self._registry:
            if any(keyword in text for keyword in trigger.keywords):
                return Matched(trigger=trigger, sub_trigger=_find_sub_trigger(trigger, text))
        return Unmatched(transcript=transcript)


def _find_sub_trigger(trigger: AutomationTrigger, text: str) -> SubTrigger | None:
    # Keywords are stripped first so "gym notes" does not select the "gym" sub-trigger.
    remainder = text
    for keyword in trigger.keywords:
        remainder = remainder.replace(keyword, " ")
    for sub_trigger in trigger.sub_triggers:
        for token in dict.fromkeys((sub_trigger.id, sub_trigger.name)):
            if re.search(rf"\b{re.escape(normalize(token))}\b", remainder):
                return sub_trigger
    return None
