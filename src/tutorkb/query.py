"""
tutorkb Query -- Read-only retrieval over the knowledge store.

Free text is turned into an FTS5 expression by quoting each word and OR-ing
them together, so any user input is a valid query and results are ranked by
bm25. Commands are not full-text indexed: they are reached through
``search_commands`` only, and ``search_all`` leaves them out.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tutorkb.models import Command, Concept, ErrorExplanation, Pattern
from tutorkb.sqlite_store import KnowledgeStore

logger = logging.getLogger("tutorkb.query")

DEFAULT_LIMIT = 10
SEARCH_ALL_LIMIT = 5

# Letters and digits only; FTS5's unicode61 tokenizer treats "_" as a separator.
_TOKEN_RE = re.compile(r"[^\W_]+")


def build_match_expression(text: str) -> str:
    """Quote every word of ``text`` and OR them; "" when there are no words."""
    words = _TOKEN_RE.findall(text)
    return " OR ".join(f'"{w}"' for w in words)


def confidence(total: int) -> float:
    """Trust in a result set, from its size alone.

    0 results -> 0.0, 5 or more -> 0.9, otherwise 0.5 + 0.08 per result.
    """
    if total <= 0:
        return 0.0
    if total >= 5:
        return 0.9
    return 0.5 + 0.08 * total


@dataclass
class SearchResults:
    """Aggregate result of a lookup."""

    concepts: List[Concept] = field(default_factory=list)
    patterns: List[Pattern] = field(default_factory=list)
    commands: List[Command] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.concepts or self.patterns or self.commands)

    def total(self) -> int:
        return len(self.concepts) + len(self.patterns) + len(self.commands)

    def confidence(self) -> float:
        return confidence(self.total())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "concepts": [c.to_dict() for c in self.concepts],
            "patterns": [p.to_dict() for p in self.patterns],
            "commands": [c.to_dict() for c in self.commands],
        }

    def format(self) -> str:
        """Render as Markdown: concepts, then patterns, then commands.

        Empty sections are omitted, so an empty result renders as "".
        """
        out: List[str] = []

        if self.concepts:
            out.append("## Concepts\n\n")
            for concept in self.concepts:
                out.append(f"### {concept.title}\n")
                out.append(f"**Topic:** {concept.topic}\n\n")
                out.append(f"{concept.explanation}\n\n")
                if concept.code_examples:
                    out.append("**Examples:**\n")
                    for ex in concept.code_examples:
                        out.append(f"\n**{ex.title}:**\n```rust\n{ex.code}\n```\n")
                        out.append(f"{ex.explanation}\n")
                    out.append("\n")

        if self.patterns:
            out.append("## Patterns\n\n")
            for pattern in self.patterns:
                out.append(f"### {pattern.name}\n")
                out.append(f"{pattern.description}\n\n")
                out.append(f"**When to use:** {pattern.when_to_use}\n\n")
                out.append(f"```rust\n{pattern.template}\n```\n\n")

        if self.commands:
            out.append("## Commands\n\n")
            for cmd in self.commands:
                out.append(f"### {cmd.tool} {cmd.command}\n")
                out.append(f"{cmd.description}\n\n")
                if cmd.examples:
                    out.append("**Examples:**\n")
                    for ex in cmd.examples:
                        out.append(f"- `{ex}`\n")
                    out.append("\n")

        return "".join(out)


def format_error(error: ErrorExplanation) -> str:
    """Render one error explanation as Markdown."""
    out = [f"## Error {error.error_code}: {error.title}\n\n", f"{error.explanation}\n\n"]
    if error.example_bad:
        out.append(f"**Erroneous code:**\n```rust\n{error.example_bad}\n```\n\n")
    if error.example_good:
        out.append(f"**Corrected code:**\n```rust\n{error.example_good}\n```\n\n")
    if error.fix_strategies:
        out.append("**How to fix:**\n")
        out.extend(f"- {s}\n" for s in error.fix_strategies)
        out.append("\n")
    return "".join(out)


class KnowledgeQuery:
    """Retrieval operations for the tutoring agent. Never mutates records."""

    def __init__(self, store: KnowledgeStore):
        self.store = store

    def search_concepts(self, text: str, limit: int = DEFAULT_LIMIT) -> List[Concept]:
        expr = build_match_expression(text)
        if not expr:
            return []
        return self.store.search_concepts(expr, limit)

    def find_patterns(self, text: str, limit: int = DEFAULT_LIMIT) -> List[Pattern]:
        expr = build_match_expression(text)
        if not expr:
            return []
        return self.store.search_patterns(expr, limit)

    def search_by_topic(self, topic: str) -> List[Concept]:
        return self.store.concepts_by_topic(topic)

    def get_concept(self, concept_id: str) -> Optional[Concept]:
        return self.store.get_concept(concept_id)

    def get_pattern(self, pattern_id: str) -> Optional[Pattern]:
        return self.store.get_pattern(pattern_id)

    def explain_error(self, error_code: str) -> Optional[ErrorExplanation]:
        return self.store.get_error(error_code)

    def search_commands(self, tool: str, keyword: str) -> List[Command]:
        """Commands of ``tool`` whose command or description contains ``keyword``.

        Matching is case-insensitive for ASCII letters only.
        """
        return self.store.search_commands(tool, keyword)

    def get_tool_commands(self, tool: str) -> List[Command]:
        return self.store.commands_for_tool(tool)

    def search_all(self, text: str) -> SearchResults:
        """Top concepts and patterns for ``text``. Commands are always empty."""
        results = SearchResults(
            concepts=self.search_concepts(text, SEARCH_ALL_LIMIT),
            patterns=self.find_patterns(text, SEARCH_ALL_LIMIT),
        )
        logger.debug("search_all(%r): %d results", text, results.total())
        return results
