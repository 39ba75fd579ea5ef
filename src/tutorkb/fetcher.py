"""
tutorkb Fetcher -- Agent-facing lookups with a confidence score.

A FetchRequest names one kind of lookup and its arguments:

    explain_concept  {topic}
    find_pattern     {use_case}
    explain_error    {error_code}
    find_command     {tool, action}
    search           {query}

KnowledgeFetcher runs it against KnowledgeQuery and returns a
KnowledgeResponse with the raw results, a Markdown rendering and a confidence
in [0, 0.9]. ConfidenceDecision turns that number into a next step for the
agent: answer directly, verify, or fetch from somewhere else.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from tutorkb.models import ErrorExplanation
from tutorkb.query import KnowledgeQuery, SearchResults, confidence, format_error

logger = logging.getLogger("tutorkb.fetcher")

REQUEST_KINDS: Dict[str, tuple] = {
    "explain_concept": ("topic",),
    "find_pattern": ("use_case",),
    "explain_error": ("error_code",),
    "find_command": ("tool", "action"),
    "search": ("query",),
}


@dataclass(frozen=True)
class FetchRequest:
    kind: str
    args: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        required = REQUEST_KINDS.get(self.kind)
        if required is None:
            raise ValueError(f"Unknown request type: {self.kind!r}")
        missing = [name for name in required if not isinstance(self.args.get(name), str)]
        if missing:
            raise ValueError(f"{self.kind} request missing: {', '.join(missing)}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FetchRequest":
        """Build from ``{"type": kind, **args}``."""
        kind = data.get("type", "")
        args = {k: v for k, v in data.items() if k != "type"}
        return cls(kind=kind, args=args)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, **self.args}


@dataclass
class KnowledgeResponse:
    request: FetchRequest
    results: SearchResults
    formatted: str
    confidence: float
    error: Optional[ErrorExplanation] = None

    def has_results(self) -> bool:
        return self.error is not None or not self.results.is_empty()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request.to_dict(),
            "results": self.results.to_dict(),
            "error": self.error.to_dict() if self.error else None,
            "formatted": self.formatted,
            "confidence": self.confidence,
        }


class KnowledgeFetcher:
    """Runs FetchRequests against a KnowledgeQuery."""

    def __init__(self, query: KnowledgeQuery):
        self.query = query

    def fetch(self, request: FetchRequest) -> KnowledgeResponse:
        """Answer one request from the store.

        Confidence is ``confidence(results.total())``, except that an exact
        error-code hit counts as one extra result: ``explain_error`` scores
        0.58 when the code is known and 0.0 when it is not.
        """
        args = request.args
        results = SearchResults()
        error = None

        if request.kind == "explain_concept":
            results.concepts = self.query.search_concepts(args["topic"])
        elif request.kind == "find_pattern":
            results.patterns = self.query.find_patterns(args["use_case"])
        elif request.kind == "explain_error":
            error = self.query.explain_error(args["error_code"])
        elif request.kind == "find_command":
            results.commands = self.query.search_commands(args["tool"], args["action"])
        else:
            results = self.query.search_all(args["query"])

        if error is not None:
            formatted = format_error(error) + results.format()
            score = confidence(results.total() + 1)
        else:
            formatted = results.format()
            score = results.confidence()

        logger.debug("%s %r -> %d results, confidence %.2f", request.kind, args, results.total(), score)
        return KnowledgeResponse(
            request=request,
            results=results,
            formatted=formatted,
            confidence=score,
            error=error,
        )

    def explain_concept(self, topic: str) -> KnowledgeResponse:
        return self.fetch(FetchRequest("explain_concept", {"topic": topic}))

    def find_pattern(self, use_case: str) -> KnowledgeResponse:
        return self.fetch(FetchRequest("find_pattern", {"use_case": use_case}))

    def explain_error(self, error_code: str) -> KnowledgeResponse:
        return self.fetch(FetchRequest("explain_error", {"error_code": error_code}))

    def find_command(self, tool: str, action: str) -> KnowledgeResponse:
        return self.fetch(FetchRequest("find_command", {"tool": tool, "action": action}))

    def search(self, query: str) -> KnowledgeResponse:
        return self.fetch(FetchRequest("search", {"query": query}))


@dataclass(frozen=True)
class ConfidenceDecision:
    """Thresholds for acting on a response's confidence."""

    threshold_high: float = 0.7
    threshold_low: float = 0.4

    def should_fetch(self, score: float) -> bool:
        """Below the high threshold: look elsewhere too."""
        return score < self.threshold_high

    def can_answer_directly(self, score: float) -> bool:
        return score >= self.threshold_high

    def needs_verification(self, score: float) -> bool:
        return self.threshold_low <= score < self.threshold_high
