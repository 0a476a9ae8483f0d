"""Detection of prompt-injection attempts and a validating prompt builder."""

from __future__ import annotations

import re
import unicodedata
from collections import Counter
from dataclasses import dataclass, field
from enum import IntEnum

MAX_PROMPT_LENGTH = 50000
"""Maximum allowed prompt length, measured in UTF-8 bytes."""

REPETITION_THRESHOLD = 10
"""A word repeated more often than this is suspicious."""

WORD_COUNT_LIMIT = 20
"""Repetition is only flagged when fewer distinct words than this occur."""

SPECIAL_CHAR_RATIO_THRESHOLD = 0.3
"""Maximum ratio of special characters before a prompt is flagged."""

DEFAULT_ALLOWED_PREFIXES = (
    "Please analyze",
    "Please review",
    "Please explain",
    "Help me",
    "I need",
    "Can you",
)


class Severity(IntEnum):
    """Severity of a detected pattern."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3


_SEVERITY_POINTS = {
    Severity.CRITICAL: 40,
    Severity.HIGH: 25,
    Severity.MEDIUM: 10,
    Severity.LOW: 3,
}


@dataclass(frozen=True)
class Match:
    """A single finding of a scan."""

    pattern: str
    severity: Severity
    category: str
    position: tuple[int, int] | None = None


@dataclass
class DetectionResult:
    """The outcome of scanning a prompt."""

    is_suspicious: bool = False
    score: int = 0
    matches: list[Match] = field(default_factory=list)
    safe: bool = True


class InjectionError(ValueError):
    """Raised when a prompt looks like an injection attempt."""

    def __init__(self, message: str, result: DetectionResult | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.result = result

    def __str__(self) -> str:
        if self.result is not None and self.result.matches:
            return f"{self.message} ({self.result.matches[0].category})"
        return self.message


@dataclass(frozen=True)
class _InjectionPattern:
    regex: re.Pattern[str]
    severity: Severity
    category: str


_PATTERN_SPECS: tuple[tuple[str, Severity, str], ...] = (
    # Direct override attempts
    (r"ignore\s+(all\s+)?(previous|above|the)\s+(instructions?|prompts?|commands?)(\s+and|\Z)",
     Severity.CRITICAL, "override"),
    (r"disregard\s+(all\s+)?(previous|above|the)\s+(instructions?|prompts?|commands?)",
     Severity.CRITICAL, "override"),
    (r"forget\s+(all\s+)?(previous|above|the)\s+(instructions?|prompts?|commands?)",
     Severity.CRITICAL, "override"),
    # Role confusion
    (r"you\s+are\s+now\s+(a\s+)?new\s+(AI|assistant|persona|chatbot|model)",
     Severity.CRITICAL, "role_confusion"),
    (r"from\s+now\s+on\s+you\s+are", Severity.CRITICAL, "role_confusion"),
    (r"act\s+as\s+(if\s+you\s+are\s+(a\s+))?(different|another|new)",
     Severity.HIGH, "role_confusion"),
    # System prompt extraction
    (r"show\s+me\s+your\s+(instructions?|prompts?|system\s+prompt|initial\s+prompt)",
     Severity.CRITICAL, "extraction"),
    (r"print\s+(your|the)\s+(instructions?|prompts?|system\s+prompt)",
     Severity.CRITICAL, "extraction"),
    (r"repeat\s+(everything|all\s+text)\s+(above|before)", Severity.CRITICAL, "extraction"),
    (r"tell\s+me\s+what\s+you\s+were\s+told\s+to\s+do", Severity.HIGH, "extraction"),
    # Jailbreak attempts
    (r"(jailbreak|jail\s*break)\s*(mode|technique|method|protocol)", Severity.HIGH, "jailbreak"),
    (r"developer\s+mode", Severity.HIGH, "jailbreak"),
    (r"(unrestricted|uncensored|filterless)\s+mode", Severity.HIGH, "jailbreak"),
    (r"DAN\s+(mode|protocol)", Severity.HIGH, "jailbreak"),
    # Instruction manipulation
    (r'(output|print|say|respond)\s+"?([^"]*)"?\s+(instead|rather|not)',
     Severity.HIGH, "manipulation"),
    (r"whatever\s+happens,", Severity.MEDIUM, "manipulation"),
    (r"no\s+matter\s+what,", Severity.MEDIUM, "manipulation"),
    # Encoding tricks
    (r"(rot13|base64|hex|ascii)\s+(decode|encoded)", Severity.MEDIUM, "encoding"),
    (r"translate\s+this\s+(code|text)\s+to\s+(english|plain)", Severity.MEDIUM, "encoding"),
    # Output format manipulation
    (r'respond\s+(only|just)\s+with\s+"', Severity.MEDIUM, "format_manipulation"),
    (r"output\s+(must|should)\s+(start|begin)\s+with", Severity.MEDIUM, "format_manipulation"),
    (r"(your\s+)?response\s+(must|should)\s+(be|start|end)",
     Severity.MEDIUM, "format_manipulation"),
    # Context boundary violation
    (r"(after|when|once)\s+(this\s+)?(sentence|paragraph|message)\s+(ends?|finishes?)",
     Severity.MEDIUM, "boundary_violation"),
    (r"beyond\s+(this\s+)?(sentence|paragraph|message)", Severity.MEDIUM, "boundary_violation"),
    # Suspicious keywords
    (r"\bwhite\s*hat\b", Severity.LOW, "suspicious"),
    (r"\bred\s*team\b", Severity.LOW, "suspicious"),
    (r"\btest\s*case\b.*\bprompt\b", Severity.LOW, "suspicious"),
)

_PATTERNS = tuple(
    _InjectionPattern(re.compile(source, re.IGNORECASE), severity, category)
    for source, severity, category in _PATTERN_SPECS
)


def _is_special(char: str) -> bool:
    category = unicodedata.category(char)
    return not (category.startswith("L") or category.startswith("N") or char.isspace())


class PromptInjectionDetector:
    """Scans prompts for patterns typical of injection attempts."""

    def __init__(self, strict_mode: bool = True) -> None:
        self.strict_mode = strict_mode
        self.max_prompt_length = MAX_PROMPT_LENGTH
        self.allowed_prefixes: tuple[str, ...] = DEFAULT_ALLOWED_PREFIXES
        self._patterns = _PATTERNS

    @property
    def _threshold(self) -> int:
        return 30 if self.strict_mode else 50

    def scan(self, prompt: str) -> DetectionResult:
        """Scan a prompt and score how suspicious it is."""
        result = DetectionResult()

        if len(prompt.encode("utf-8")) > self.max_prompt_length:
            result.matches.append(Match("excessive_length", Severity.MEDIUM, "length"))
            result.safe = False

        if self._has_excessive_repetition(prompt):
            result.matches.append(Match("excessive_repetition", Severity.MEDIUM, "repetition"))
            result.safe = False

        if self._has_unusual_characters(prompt):
            result.matches.append(Match("unusual_characters", Severity.LOW, "encoding"))

        for pattern in self._patterns:
            for found in pattern.regex.finditer(prompt):
                result.matches.append(
                    Match(pattern.regex.pattern, pattern.severity, pattern.category, found.span())
                )
                if pattern.severity >= Severity.MEDIUM:
                    result.safe = False

        result.score = min(100, sum(_SEVERITY_POINTS[m.severity] for m in result.matches))
        result.is_suspicious = result.score >= self._threshold
        return result

    def sanitize(self, prompt: str) -> str:
        """Replace high and critical severity patterns with a redaction marker."""
        for pattern in self._patterns:
            if pattern.severity >= Severity.HIGH:
                prompt = pattern.regex.sub("[REDACTED]", prompt)
        return prompt

    def validate(self, prompt: str) -> DetectionResult:
        """Return the scan result, raising InjectionError if the prompt is suspicious."""
        result = self.scan(prompt)
        if result.is_suspicious:
            raise InjectionError("prompt contains potential injection patterns", result)
        return result

    def validate_with_prefix(self, prompt: str) -> DetectionResult:
        """Like validate, but in strict mode also require an allowed prefix."""
        trimmed = prompt.strip()
        has_prefix = any(trimmed.startswith(prefix) for prefix in self.allowed_prefixes)
        if self.strict_mode and not has_prefix:
            raise InjectionError("prompt must start with a valid prefix")
        return self.validate(prompt)

    @staticmethod
    def _has_excessive_repetition(text: str) -> bool:
        words = text.split()
        if len(words) < 5:
            return False
        counts = Counter(word.lower() for word in words)
        return len(counts) < WORD_COUNT_LIMIT and any(
            count > REPETITION_THRESHOLD for count in counts.values()
        )

    @staticmethod
    def _has_unusual_characters(text: str) -> bool:
        size = len(text.encode("utf-8"))
        if size == 0:
            return False
        special = sum(1 for char in text if _is_special(char))
        return special / size > SPECIAL_CHAR_RATIO_THRESHOLD


def lenient_detector() -> PromptInjectionDetector:
    """Return a detector with relaxed rules."""
    return PromptInjectionDetector(strict_mode=False)


class PromptBuilder:
    """Assembles a prompt from parts and validates it on build."""

    def __init__(self) -> None:
        self._detector = PromptInjectionDetector()
        self._parts: list[str] = []

    def add(self, part: str) -> PromptBuilder:
        self._parts.append(part)
        return self

    def addf(self, fmt: str, *args: object) -> PromptBuilder:
        self._parts.append(fmt % args)
        return self

    def build(self) -> str:
        """Join the parts and validate the result."""
        prompt = self.build_unsafe()
        self._detector.validate(prompt)
        return prompt

    def build_unsafe(self) -> str:
        """Join the parts without validation."""
        return "\n".join(self._parts)

    def clear(self) -> PromptBuilder:
        self._parts.clear()
        return self