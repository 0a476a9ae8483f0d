"""Discovery, loading and parsing of skill definitions stored as SKILL.md files."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

SKILL_FILE = "SKILL.md"

_VALID_SKILL_NAME = re.compile(r"[a-zA-Z0-9_-]+")
_LEADING_INT = re.compile(r"[+-]?\d+")
_LEADING_FLOAT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INPUT_PROPERTIES = frozenset({"name", "type", "description", "required", "default"})


class SkillError(Exception):
    """Raised when a skill cannot be found, read or accepted."""


@dataclass
class ThinkingOptions:
    """Configures extended thinking for a skill."""

    budget_tokens: int = 0
    enabled: bool = False


@dataclass
class SkillOptions:
    """Optional execution settings for a skill."""

    thinking: ThinkingOptions = field(default_factory=ThinkingOptions)
    allowed_tools: list[str] = field(default_factory=list)
    output_format: str = ""
    max_turns: int = 0
    budget_usd: float = 0.0


@dataclass
class SkillInput:
    """An input parameter a skill accepts."""

    name: str = ""
    type: str = ""
    description: str = ""
    required: bool = False
    default: str = ""


@dataclass
class Skill:
    """A loaded skill definition."""

    name: str
    path: str = ""
    description: str = ""
    version: str = ""
    author: str = ""
    license: str = ""
    options: SkillOptions = field(default_factory=SkillOptions)
    inputs: list[SkillInput] = field(default_factory=list)
    content: str = ""
    metadata: dict[str, str] = field(default_factory=dict)


def is_valid_skill_name(name: str) -> bool:
    """True if name is safe to use as a single path component."""
    if not name:
        return False
    if ".." in name or "/" in name or "\\" in name:
        return False
    return _VALID_SKILL_NAME.fullmatch(name) is not None


def _is_input_property(key: str) -> bool:
    return key.lower() in _INPUT_PROPERTIES


def _leading_int(value: str) -> int | None:
    found = _LEADING_INT.match(value)
    return int(found.group()) if found else None


def _leading_float(value: str) -> float | None:
    found = _LEADING_FLOAT.match(value)
    return float(found.group()) if found else None


def _split_key_value(text: str) -> tuple[str, str]:
    key, _, value = text.partition(":")
    return key.strip(), value.strip()


def _apply_input_property(item: SkillInput, key: str, value: str) -> None:
    key = key.lower()
    if key == "name":
        item.name = value
    elif key == "type":
        item.type = value
    elif key == "description":
        item.description = value
    elif key == "required":
        item.required = value.lower() == "true" or value == "1"
    elif key == "default":
        item.default = value


def _parse_input_inline(content: str, item: SkillInput) -> None:
    """Parse the inline form 'name: type (required) (default: x): description'."""
    name, sep, rest = content.partition(":")
    if not sep:
        return
    item.name = name.strip()
    rest = rest.strip()

    while "(" in rest and ")" in rest:
        open_idx = rest.index("(")
        close_idx = rest.find(")", open_idx)
        if close_idx <= open_idx:
            break
        paren = rest[open_idx + 1:close_idx].strip().lower()
        if "required" in paren:
            item.required = True
        if "default:" in paren:
            item.default = rest[open_idx + 9:close_idx].strip()
        rest = (rest[:open_idx] + rest[close_idx + 1:].strip()).strip()

    words = rest.split()
    if words:
        item.type = words[0].removesuffix(":").removesuffix(",").strip()
    if len(words) > 1:
        description = " ".join(words[1:]).removeprefix(":").removeprefix("-")
        item.description = description.strip()


def _apply_field(skill: Skill, key: str, value: str) -> None:
    options = skill.options
    if key == "name":
        return  # the directory name is authoritative
    if key == "description":
        skill.description = value
    elif key == "version":
        skill.version = value
    elif key == "author":
        skill.author = value
    elif key == "license":
        skill.license = value
    elif key == "budget_tokens":
        number = _leading_int(value)
        if number is not None:
            options.thinking.budget_tokens = number
    elif key == "thinking_enabled":
        options.thinking.enabled = value.lower() == "true"
    elif key == "max_turns":
        number = _leading_int(value)
        if number is not None:
            options.max_turns = number
    elif key == "output_format":
        options.output_format = value
    elif key == "budget_usd":
        amount = _leading_float(value)
        if amount is not None:
            options.budget_usd = amount
    else:
        skill.metadata[key] = value


def parse_skill(name: str, path: str, content: str) -> Skill:
    """Parse SKILL.md content with an optional '---' delimited frontmatter."""
    skill = Skill(name=name, path=path)

    parts = content.split("---")
    if len(parts) < 3:
        skill.content = content.strip()
        skill.description = f"Skill: {name}"
        return skill

    frontmatter = parts[1]
    skill.content = parts[2].strip()

    in_tools = False
    in_inputs = False
    current: SkillInput | None = None

    def flush() -> None:
        if current is not None and current.name:
            skill.inputs.append(current)

    for line in frontmatter.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue

        if trimmed.startswith("tools:"):
            in_tools, in_inputs, current = True, False, None
            continue
        if trimmed.startswith("inputs:"):
            in_inputs, in_tools, current = True, False, None
            continue

        if in_tools:
            if trimmed.startswith("- "):
                skill.options.allowed_tools.append(trimmed[2:].strip())
                continue
            if not trimmed.startswith("-"):
                in_tools = False

        if in_inputs:
            if trimmed.startswith("- "):
                flush()
                entry = trimmed[2:]
                current = SkillInput()
                if ":" in entry:
                    first_key, first_value = _split_key_value(entry)
                    if _is_input_property(first_key):
                        _apply_input_property(current, first_key, first_value)
                    else:
                        _parse_input_inline(entry, current)
                continue
            if current is not None and not trimmed.startswith("-") and ":" in trimmed:
                key, value = _split_key_value(trimmed)
                if _is_input_property(key):
                    _apply_input_property(current, key, value)
                else:
                    if current.name:
                        skill.inputs.append(current)
                        current = None
                    in_inputs = False
                continue
            if line[0] not in " \t" and not trimmed.startswith("-"):
                flush()
                current = None
                in_inputs = False

        if not in_tools and not in_inputs and ":" in trimmed and not trimmed.startswith("-"):
            key, value = _split_key_value(trimmed)
            _apply_field(skill, key, value)

    flush()

    if not skill.description:
        skill.description = f"Skill: {name}"
    return skill


class SkillLoader:
    """Discovers skills in a directory and loads them, caching by name."""

    def __init__(self, skills_dir: str) -> None:
        self.skills_dir = skills_dir
        self._skills: dict[str, Skill] = {}

    def discover(self) -> list[str]:
        """Return the names of subdirectories that hold a SKILL.md file."""
        try:
            entries = sorted(os.scandir(self.skills_dir), key=lambda entry: entry.name)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise SkillError(f"failed to read skills directory: {exc}") from exc

        return [
            entry.name
            for entry in entries
            if entry.is_dir(follow_symlinks=False)
            and os.path.exists(os.path.join(self.skills_dir, entry.name, SKILL_FILE))
        ]

    def load(self, name: str) -> Skill:
        """Load a skill by name, reading it from disk the first time."""
        if not name:
            raise SkillError("skill name cannot be empty")
        if not self.skills_dir:
            raise SkillError("skills directory not configured")

        cached = self._skills.get(name)
        if cached is not None:
            return cached

        if not is_valid_skill_name(name):
            raise SkillError(f"invalid skill name: {name}")

        path = os.path.join(self.skills_dir, name, SKILL_FILE)
        try:
            with open(path, encoding="utf-8", errors="replace") as handle:
                content = handle.read()
        except OSError as exc:
            raise SkillError(f"failed to read skill file: {exc}") from exc

        skill = parse_skill(name, path, content)
        self._skills[name] = skill
        return skill

    def load_all(self) -> list[Skill]:
        """Load every discovered skill."""
        skills = []
        for name in self.discover():
            try:
                skills.append(self.load(name))
            except SkillError as exc:
                raise SkillError(f"failed to load skill {name}: {exc}") from exc
        return skills

    def get(self, name: str) -> Skill | None:
        """Return an already loaded skill, or None."""
        return self._skills.get(name)

    def prompt_for_skill(self, name: str) -> str:
        """Return the prompt body of a skill."""
        return self.load(name).content

    def skills_by_category(self, pattern: str) -> list[Skill]:
        """Return skills whose name or description contains pattern, ignoring case."""
        needle = pattern.lower()
        return [
            skill
            for skill in self.load_all()
            if needle in skill.name.lower() or needle in skill.description.lower()
        ]

    def validate(self, skill: Skill) -> Skill:
        """Return the skill if it has a name and content, else raise SkillError."""
        if not skill.name:
            raise SkillError("skill name is required")
        if not skill.content:
            raise SkillError("skill content is empty")
        return skill

    def list_names(self) -> list[str]:
        """Return discovered skill names, or an empty list on error."""
        try:
            return self.discover()
        except SkillError:
            return []

    def skill_names_for_operation(self, op: str) -> list[str]:
        """Return the names of skills suited to an operation such as 'review'."""
        try:
            skills = self.load_all()
        except SkillError:
            return []

        op = op.lower()
        if op == "review":
            keywords: tuple[str, ...] = ("review",)
        elif op in ("analyze", "change"):
            keywords = ("change-analyzer", "change")
        elif op in ("test", "test-gen"):
            keywords = ("test",)
        elif op == "log":
            keywords = ("log",)
        else:
            return []

        return [
            skill.name
            for skill in skills
            if any(keyword in skill.name.lower() for keyword in keywords)
        ]