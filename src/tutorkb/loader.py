"""
tutorkb Loader -- Populate the knowledge store from JSON source documents.

A knowledge directory holds up to four well-known files, one per record
family. Each file is a hierarchy (modules -> concepts, categories -> patterns,
sections -> commands, or a flat error list); every leaf element is parsed into
a typed Source* record that fills in defaults for missing fields, then
converted into a store record and written through KnowledgeStore.

A missing file contributes nothing. A present file that is not valid JSON, or
whose top-level value is not an object, raises.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from tutorkb.models import CodeExample, Command, CommandFlag, Concept, ErrorExplanation, Pattern
from tutorkb.sqlite_store import KnowledgeStore

logger = logging.getLogger("tutorkb.loader")

CONCEPTS_FILE = "rust_core_concepts.json"
PATTERNS_FILE = "rust_patterns_idioms.json"
COMMANDS_FILE = "rust_toolchain_cargo.json"
ERRORS_FILE = "rust_compiler_errors.json"

UNNAMED = "Unnamed"
UNKNOWN_MODULE = "unknown"
UNKNOWN_CATEGORY = "Unknown"
FALLBACK_TOOL = "rust"


def slugify(s: str) -> str:
    """Lowercase, collapse each non-alphanumeric run into one hyphen, trim hyphens.

    >>> slugify("Move Semantics")
    'move-semantics'
    >>> slugify("  Error: E0382!! ")
    'error-e0382'
    """
    mapped = "".join(c if c.isalnum() else "-" for c in s.lower())
    return "-".join(part for part in mapped.split("-") if part)


def _str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _str_list(value: Any) -> Optional[List[str]]:
    """Keep the string elements of a JSON array; None when not an array."""
    if not isinstance(value, list):
        return None
    return [v for v in value if isinstance(v, str)]


def _objects(value: Any, what: str) -> Iterator[Dict[str, Any]]:
    """Yield the object elements of a JSON array, warning on anything else."""
    if not isinstance(value, list):
        return
    for i, item in enumerate(value):
        if isinstance(item, dict):
            yield item
        else:
            logger.warning("Skipping non-object %s at index %d: %r", what, i, item)


# ============================================================================
# Source records
# ============================================================================


@dataclass
class SourceConcept:
    name: str = UNNAMED
    description: str = ""
    rules: Optional[List[str]] = None
    key_points: Optional[List[str]] = None
    examples: List[CodeExample] = field(default_factory=list)
    common_errors: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceConcept":
        return cls(
            name=_str(data.get("name"), UNNAMED),
            description=_str(data.get("description")),
            rules=_str_list(data.get("rules")),
            key_points=_str_list(data.get("key_points")),
            examples=[CodeExample.from_dict(ex) for ex in _objects(data.get("examples"), "example")],
            common_errors=_str_list(data.get("common_errors")) or [],
        )

    def explanation(self) -> str:
        """Description followed by optional Rules and Key Points bullet blocks."""
        parts = [self.description]
        if self.rules is not None:
            parts.append("\n\nRules:\n")
            parts.extend(f"- {r}\n" for r in self.rules)
        if self.key_points is not None:
            parts.append("\n\nKey Points:\n")
            parts.extend(f"- {p}\n" for p in self.key_points)
        return "".join(parts)

    def to_concept(self, module_id: str) -> Concept:
        return Concept(
            id=f"{slugify(module_id)}-{slugify(self.name)}",
            topic=module_id,
            title=self.name,
            explanation=self.explanation(),
            code_examples=list(self.examples),
            common_mistakes=list(self.common_errors),
            related_concepts=[],
            tags=[module_id, module_id],
        )


@dataclass
class SourcePattern:
    name: str = UNNAMED
    description: str = ""
    example: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourcePattern":
        example = data.get("example")
        return cls(
            name=_str(data.get("name"), UNNAMED),
            description=_str(data.get("description")),
            example=example if isinstance(example, str) else None,
        )

    def to_pattern(self, category: str) -> Pattern:
        examples = []
        if self.example is not None:
            examples.append(CodeExample(title=self.name, code=self.example, explanation=self.description))
        return Pattern(
            id=f"{slugify(category)}-{slugify(self.name)}",
            name=self.name,
            description=self.description,
            template=self.example or "",
            when_to_use=category,
            when_not_to_use="",
            examples=examples,
        )


@dataclass
class SourceCommand:
    command: str = ""
    description: str = ""
    options: List[str] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceCommand":
        return cls(
            command=_str(data.get("command")),
            description=_str(data.get("description")),
            options=_str_list(data.get("options")) or [],
            examples=_str_list(data.get("examples")) or [],
        )

    @staticmethod
    def parse_option(option: str) -> CommandFlag:
        """Split ``"<flag> - <description>"`` on the first separator."""
        flag, sep, description = option.partition(" - ")
        if not sep:
            return CommandFlag(flag=option, description="")
        return CommandFlag(flag=flag.strip(), description=description.strip())

    def to_command(self, tool: str) -> Command:
        return Command(
            tool=tool,
            command=self.command,
            description=self.description,
            flags=[self.parse_option(opt) for opt in self.options],
            examples=list(self.examples),
        )


@dataclass
class SourceError:
    code: Optional[str] = None
    title: str = UNNAMED
    explanation: str = ""
    example_bad: str = ""
    example_good: str = ""
    fix_strategies: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceError":
        code = data.get("code")
        return cls(
            code=code if isinstance(code, str) and code else None,
            title=_str(data.get("title"), UNNAMED),
            explanation=_str(data.get("explanation")),
            example_bad=_str(data.get("example_bad")),
            example_good=_str(data.get("example_good")),
            fix_strategies=_str_list(data.get("fix_strategies")) or [],
        )

    def to_error(self) -> ErrorExplanation:
        return ErrorExplanation(
            error_code=self.code or "",
            title=self.title,
            explanation=self.explanation,
            example_bad=self.example_bad,
            example_good=self.example_good,
            fix_strategies=list(self.fix_strategies),
        )


def tool_for_section(section_name: str) -> str:
    """Map a command section name to its tool."""
    if "Cargo" in section_name:
        return "cargo"
    if "Rustup" in section_name:
        return "rustup"
    return FALLBACK_TOOL


# ============================================================================
# Load statistics
# ============================================================================


@dataclass
class LoadStats:
    concepts: int = 0
    patterns: int = 0
    errors: int = 0
    commands: int = 0

    def total(self) -> int:
        return self.concepts + self.patterns + self.errors + self.commands

    def to_dict(self) -> Dict[str, int]:
        d = asdict(self)
        d["total"] = self.total()
        return d

    def __add__(self, other: "LoadStats") -> "LoadStats":
        if not isinstance(other, LoadStats):
            return NotImplemented
        return LoadStats(
            concepts=self.concepts + other.concepts,
            patterns=self.patterns + other.patterns,
            errors=self.errors + other.errors,
            commands=self.commands + other.commands,
        )

    def __str__(self) -> str:
        return (
            f"Loaded {self.concepts} concepts, {self.patterns} patterns, "
            f"{self.errors} errors, {self.commands} commands (total: {self.total()})"
        )


# ============================================================================
# Loader
# ============================================================================


def _read_document(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a source document; its top-level value must be a JSON object."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level JSON value must be an object, got {type(data).__name__}")
    return data


class KnowledgeLoader:
    """Writes source documents into a KnowledgeStore."""

    def __init__(self, store: KnowledgeStore):
        self.store = store

    def load_all_from_directory(self, directory: Union[str, Path]) -> LoadStats:
        """Load every well-known source file present in ``directory``."""
        directory = Path(directory)
        stats = LoadStats()

        path = directory / CONCEPTS_FILE
        if path.exists():
            stats.concepts += self.load_concepts(path)
        path = directory / PATTERNS_FILE
        if path.exists():
            stats.patterns += self.load_patterns(path)
        path = directory / COMMANDS_FILE
        if path.exists():
            stats.commands += self.load_commands(path)
        path = directory / ERRORS_FILE
        if path.exists():
            stats.errors += self.load_errors(path)

        logger.info("%s from %s", stats, directory)
        return stats

    def load_concepts(self, path: Union[str, Path]) -> int:
        data = _read_document(path)
        count = 0
        for module in _objects(data.get("modules"), "module"):
            module_id = _str(module.get("id"), UNKNOWN_MODULE)
            for item in _objects(module.get("concepts"), "concept"):
                concept = SourceConcept.from_dict(item).to_concept(module_id)
                self.store.store_concept(concept)
                count += 1
        logger.debug("Loaded %d concepts from %s", count, path)
        return count

    def load_patterns(self, path: Union[str, Path]) -> int:
        data = _read_document(path)
        count = 0
        for category in _objects(data.get("categories"), "category"):
            category_name = _str(category.get("name"), UNKNOWN_CATEGORY)
            for item in _objects(category.get("patterns"), "pattern"):
                pattern = SourcePattern.from_dict(item).to_pattern(category_name)
                self.store.store_pattern(pattern)
                count += 1
        logger.debug("Loaded %d patterns from %s", count, path)
        return count

    def load_commands(self, path: Union[str, Path]) -> int:
        data = _read_document(path)
        count = 0
        for section in _objects(data.get("sections"), "section"):
            tool = tool_for_section(_str(section.get("name"), UNKNOWN_CATEGORY))
            for item in _objects(section.get("commands"), "command"):
                self.store.store_command(SourceCommand.from_dict(item).to_command(tool))
                count += 1
        logger.debug("Loaded %d commands from %s", count, path)
        return count

    def load_errors(self, path: Union[str, Path]) -> int:
        data = _read_document(path)
        count = 0
        for item in _objects(data.get("errors"), "error"):
            source = SourceError.from_dict(item)
            if source.code is None:
                logger.warning("Skipping error entry without a code: %r", source.title)
                continue
            self.store.store_error(source.to_error())
            count += 1
        logger.debug("Loaded %d errors from %s", count, path)
        return count

    def get_stats(self) -> LoadStats:
        """Current store row counts."""
        return LoadStats(
            concepts=self.store.count_concepts(),
            patterns=self.store.count_patterns(),
            errors=self.store.count_errors(),
            commands=self.store.count_commands(),
        )
