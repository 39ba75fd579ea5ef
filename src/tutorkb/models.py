"""
tutorkb Models -- Record kinds held by the knowledge store.

Four record kinds live in the store: Concept, Pattern, ErrorExplanation and
Command. Nested list/struct fields are plain Python lists of strings or of the
small CodeExample / CommandFlag records below; the store serializes them to
JSON text columns.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class CodeExample:
    """Code example with explanation."""

    title: str = ""
    code: str = ""
    explanation: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CodeExample":
        return cls(
            title=str(data.get("title") or ""),
            code=str(data.get("code") or ""),
            explanation=str(data.get("explanation") or ""),
        )


@dataclass
class CommandFlag:
    """Command flag/option."""

    flag: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommandFlag":
        return cls(flag=str(data.get("flag") or ""), description=str(data.get("description") or ""))


@dataclass
class Concept:
    """Core language concept with a textbook-style explanation.

    ``related_concepts`` holds concept ids for display only; they are never
    checked for existence.
    """

    id: str
    topic: str
    title: str
    explanation: str = ""
    code_examples: List[CodeExample] = field(default_factory=list)
    common_mistakes: List[str] = field(default_factory=list)
    related_concepts: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Concept":
        return cls(
            id=data["id"],
            topic=data.get("topic", ""),
            title=data.get("title", ""),
            explanation=data.get("explanation", ""),
            code_examples=[CodeExample.from_dict(ex) for ex in data.get("code_examples") or []],
            common_mistakes=list(data.get("common_mistakes") or []),
            related_concepts=list(data.get("related_concepts") or []),
            tags=list(data.get("tags") or []),
        )


@dataclass
class Pattern:
    """Reusable code pattern."""

    id: str
    name: str
    description: str = ""
    template: str = ""
    when_to_use: str = ""
    when_not_to_use: str = ""
    examples: List[CodeExample] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pattern":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            template=data.get("template", ""),
            when_to_use=data.get("when_to_use", ""),
            when_not_to_use=data.get("when_not_to_use", ""),
            examples=[CodeExample.from_dict(ex) for ex in data.get("examples") or []],
        )


@dataclass
class ErrorExplanation:
    """Compiler error with explanation and fixes, keyed by error code (e.g. E0382)."""

    error_code: str
    title: str
    explanation: str = ""
    example_bad: str = ""
    example_good: str = ""
    fix_strategies: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorExplanation":
        return cls(
            error_code=data["error_code"],
            title=data.get("title", ""),
            explanation=data.get("explanation", ""),
            example_bad=data.get("example_bad", ""),
            example_good=data.get("example_good", ""),
            fix_strategies=list(data.get("fix_strategies") or []),
        )


@dataclass
class Command:
    """Toolchain command reference (cargo, rustup, ...).

    ``id`` is the surrogate row id assigned by the store; it is None until
    the command has been stored.
    """

    tool: str
    command: str
    description: str = ""
    flags: List[CommandFlag] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Command":
        return cls(
            tool=data.get("tool", ""),
            command=data.get("command", ""),
            description=data.get("description", ""),
            flags=[CommandFlag.from_dict(f) for f in data.get("flags") or []],
            examples=list(data.get("examples") or []),
            id=data.get("id"),
        )


__all__ = [
    "CodeExample",
    "CommandFlag",
    "Concept",
    "Pattern",
    "ErrorExplanation",
    "Command",
]
