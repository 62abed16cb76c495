import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Order matters: earlier keywords win when a message names several pages.
NAVIGATION_KEYWORDS: dict[str, str] = {
    "dashboard": "/dashboard",
    "home": "/dashboard",
    "main": "/dashboard",
    "start": "/dashboard",
    "begin": "/dashboard",
    "tasks": "/tasks",
    "task": "/tasks",
    "timer": "/timer",
    "pomodoro": "/timer",
    "sounds": "/sounds",
    "sound": "/sounds",
    "music": "/sounds",
    "notes": "/notes",
    "note": "/notes",
    "food": "/food",
    "foods": "/food",
    "recipe": "/food",
    "recipes": "/food",
    "cooking": "/food",
    "settings": "/settings",
    "setting": "/settings",
    "preferences": "/settings",
}

PHRASE_TEMPLATES = (
    "take me to {kw}",
    "go to {kw}",
    "open {kw}",
    "show me {kw}",
    "navigate to {kw}",
    "bring me to {kw}",
    "take me {kw}",
    "go {kw}",
    "show {kw}",
    "open the {kw}",
    "i want to go to {kw}",
    "i want {kw}",
    "let's go to {kw}",
    "let's see {kw}",
    "can you take me to {kw}",
    "can you go to {kw}",
    "please take me to {kw}",
    "please go to {kw}",
)

NAVIGATION_VERBS = ("take", "go", "open", "show", "navigate", "bring", "see", "visit", "switch")

def _verb_forms(verb: str) -> set:
    forms = {verb, verb + "s", verb + "es", verb + "ing"}
    if verb.endswith("e"):
        forms.add(verb[:-1] + "ing")
    return forms

# "going", "takes", "showing" count; "good" does not
NAVIGATION_VERB_FORMS = frozenset(form for verb in NAVIGATION_VERBS for form in _verb_forms(verb))

# Looser last resort for "home"/"dashboard" requests, matched as substrings.
DASHBOARD_FALLBACK_VERBS = ("take", "go", "open", "show", "navigate", "bring", "see")

@dataclass(frozen=True)
class NavigationRule:
    name: str
    predicate: Callable[[str, frozenset], bool]
    target: str

def _phrase_rule(keyword: str, target: str) -> NavigationRule:
    phrases = tuple(template.format(kw=keyword) for template in PHRASE_TEMPLATES)
    return NavigationRule(
        name=f"phrase:{keyword}",
        predicate=lambda text, words: any(phrase in text for phrase in phrases),
        target=target,
    )

def _keyword_verb_rule(keyword: str, target: str) -> NavigationRule:
    return NavigationRule(
        name=f"keyword+verb:{keyword}",
        predicate=lambda text, words: keyword in words and not words.isdisjoint(NAVIGATION_VERB_FORMS),
        target=target,
    )

def _dashboard_fallback(text: str, words: frozenset) -> bool:
    if "dashboard" not in text and "home" not in text:
        return False
    return any(verb in text for verb in DASHBOARD_FALLBACK_VERBS)

def build_rules() -> list[NavigationRule]:
    rules = [_phrase_rule(kw, target) for kw, target in NAVIGATION_KEYWORDS.items()]
    rules += [_keyword_verb_rule(kw, target) for kw, target in NAVIGATION_KEYWORDS.items()]
    rules.append(NavigationRule(name="dashboard-fallback", predicate=_dashboard_fallback, target="/dashboard"))
    return rules

NAVIGATION_RULES = build_rules()

def _words(text: str) -> frozenset:
    return frozenset(re.findall(r"[a-z']+", text))

def match_navigation(message: str, rules: Optional[list[NavigationRule]] = None) -> Optional[str]:
    """Return the page path a chat message asks to open, or None. First matching rule wins."""
    text = (message or "").lower().strip()
    if not text:
        return None

    words = _words(text)
    for rule in rules if rules is not None else NAVIGATION_RULES:
        if rule.predicate(text, words):
            logger.info("Navigation detected by %s -> %s", rule.name, rule.target)
            return rule.target
    return None
