"""Generation errors and best-effort classification of provider failures."""

from __future__ import annotations

from dataclasses import dataclass

from gemchat.core.types import GenerationErrorKind


class GenerationError(Exception):
    """A generation call failed. ``kind`` is a best-effort classification."""

    def __init__(self, kind: GenerationErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(f"[{kind.value}] {message}")


@dataclass(frozen=True, slots=True)
class ClassifierRule:
    """Maps an error message to ``kind`` if it contains any of ``markers``."""

    kind: GenerationErrorKind
    markers: tuple[str, ...]

    def matches(self, message: str) -> bool:
        lowered = message.lower()
        return any(marker.lower() in lowered for marker in self.markers)


# Order matters: "429 quota exceeded" is a quota error, not a rate limit.
DEFAULT_RULES: tuple[ClassifierRule, ...] = (
    ClassifierRule(GenerationErrorKind.AUTH, ("API_KEY", "401", "403")),
    ClassifierRule(GenerationErrorKind.QUOTA, ("quota", "429")),
    ClassifierRule(GenerationErrorKind.RATE_LIMIT, ("rate limit",)),
    ClassifierRule(GenerationErrorKind.NETWORK, ("fetch", "network")),
)


def classify_error(
    message: str, rules: tuple[ClassifierRule, ...] = DEFAULT_RULES
) -> GenerationErrorKind:
    for rule in rules:
        if rule.matches(message):
            return rule.kind
    return GenerationErrorKind.UNKNOWN


def to_generation_error(
    exc: BaseException, rules: tuple[ClassifierRule, ...] = DEFAULT_RULES
) -> GenerationError:
    if isinstance(exc, GenerationError):
        return exc
    message = str(exc) or type(exc).__name__
    return GenerationError(classify_error(message, rules), message)
