"""
tutorkb MCP Handlers -- Maps tool names to async handler functions.

Each handler delegates to tutorkb.bridge for actual operations and returns
MCP-compatible response dicts.
"""

import logging
from typing import Any, Dict

from tutorkb.fetcher import ConfidenceDecision, KnowledgeResponse
from tutorkb.query import SearchResults

logger = logging.getLogger("tutorkb.server.handlers")

_decision = ConfidenceDecision()


def _clamp_int(value, default: int, min_val: int = 1, max_val: int = 10000) -> int:
    """Clamp a numeric argument to safe bounds."""
    try:
        v = int(value)
        return max(min_val, min(v, max_val))
    except (TypeError, ValueError):
        return default


# ============================================================================
# Response Helpers
# ============================================================================


def mcp_response(text: str) -> dict:
    """Build a successful MCP response."""
    return {"content": [{"type": "text", "text": str(text)}]}


def mcp_error(text: str) -> dict:
    """Build an error MCP response."""
    return {"content": [{"type": "text", "text": f"Error: {text}"}], "isError": True}


def _render(response: KnowledgeResponse, subject: str) -> dict:
    """Markdown body plus a confidence footer."""
    if not response.has_results():
        return mcp_response(f"No knowledge found for {subject}.\n\n**Confidence:** 0.00")
    text = response.formatted.rstrip() + f"\n\n**Confidence:** {response.confidence:.2f}"
    if _decision.needs_verification(response.confidence):
        text += " (partial match, verify before relying on it)"
    return mcp_response(text)


# ============================================================================
# Lookup handlers
# ============================================================================


async def handle_kb_search(arguments: dict) -> dict:
    """Free-text search over concepts and patterns."""
    query = arguments.get("query", "").strip()
    if not query:
        return mcp_error("query is required")
    try:
        from tutorkb.bridge import search

        return _render(search(query), f"'{query}'")
    except Exception as e:
        logger.error("kb_search failed: %s", e)
        return mcp_error(f"knowledge lookup failed: {e}")


async def handle_kb_concept(arguments: dict) -> dict:
    topic = arguments.get("topic", "").strip()
    if not topic:
        return mcp_error("topic is required")
    try:
        from tutorkb.bridge import explain_concept

        return _render(explain_concept(topic), f"concept '{topic}'")
    except Exception as e:
        logger.error("kb_concept failed: %s", e)
        return mcp_error(f"knowledge lookup failed: {e}")


async def handle_kb_topic(arguments: dict) -> dict:
    """List concepts under an exact topic id."""
    topic = arguments.get("topic", "").strip()
    if not topic:
        return mcp_error("topic is required")
    limit = _clamp_int(arguments.get("limit", 20), default=20, max_val=200)
    try:
        from tutorkb.bridge import topic_concepts

        concepts = topic_concepts(topic)
        if not concepts:
            return mcp_response(f"No concepts filed under topic '{topic}'.")
        text = SearchResults(concepts=concepts[:limit]).format().rstrip()
        if len(concepts) > limit:
            text += f"\n\n_{len(concepts) - limit} more concepts not shown._"
        return mcp_response(text)
    except Exception as e:
        logger.error("kb_topic failed: %s", e)
        return mcp_error(f"knowledge lookup failed: {e}")


async def handle_kb_pattern(arguments: dict) -> dict:
    use_case = arguments.get("use_case", "").strip()
    if not use_case:
        return mcp_error("use_case is required")
    try:
        from tutorkb.bridge import find_pattern

        return _render(find_pattern(use_case), f"pattern '{use_case}'")
    except Exception as e:
        logger.error("kb_pattern failed: %s", e)
        return mcp_error(f"knowledge lookup failed: {e}")


async def handle_kb_error(arguments: dict) -> dict:
    error_code = arguments.get("error_code", "").strip()
    if not error_code:
        return mcp_error("error_code is required")
    try:
        from tutorkb.bridge import explain_error

        return _render(explain_error(error_code), f"error {error_code}")
    except Exception as e:
        logger.error("kb_error failed: %s", e)
        return mcp_error(f"knowledge lookup failed: {e}")


async def handle_kb_command(arguments: dict) -> dict:
    tool = arguments.get("tool", "").strip()
    action = arguments.get("action", "").strip()
    if not tool or not action:
        return mcp_error("tool and action are required")
    try:
        from tutorkb.bridge import find_command

        return _render(find_command(tool, action), f"{tool} '{action}'")
    except Exception as e:
        logger.error("kb_command failed: %s", e)
        return mcp_error(f"knowledge lookup failed: {e}")


# ============================================================================
# Maintenance handlers
# ============================================================================


async def handle_kb_status(arguments: dict) -> dict:
    """Record counts, topics, tools and index health."""
    try:
        from tutorkb.bridge import status

        st = status()
        if "error" in st:
            return mcp_error(f"Status check failed: {st['error']}")

        output = "# Knowledge Base Status\n\n"
        output += f"**Database:** {st['database']}\n"
        output += f"**Concepts:** {st['concepts']}\n"
        output += f"**Patterns:** {st['patterns']}\n"
        output += f"**Errors:** {st['errors']}\n"
        output += f"**Commands:** {st['commands']}\n"
        output += f"**Index in sync:** {'Yes' if st['index_in_sync'] else 'No'}\n"
        if st["topics"]:
            output += "\n## Topics\n"
            for topic, n in st["topics"].items():
                output += f"- {topic} ({n})\n"
        if st["tools"]:
            output += "\n## Tools\n"
            for tool, n in st["tools"].items():
                output += f"- {tool} ({n})\n"
        return mcp_response(output)
    except Exception as e:
        logger.error("kb_status failed: %s", e)
        return mcp_error("Status check failed")


async def handle_kb_load(arguments: dict) -> dict:
    """Load source documents from a knowledge directory."""
    directory = (arguments.get("directory") or "").strip() or None
    try:
        from tutorkb.bridge import load_directory

        stats = load_directory(directory)
        return mcp_response(str(stats))
    except FileNotFoundError as e:
        return mcp_error(str(e))
    except Exception as e:
        logger.error("kb_load failed: %s", e)
        return mcp_error(f"Load failed: {e}")


# ============================================================================
# Handler Registry
# ============================================================================

HANDLERS: Dict[str, Any] = {
    "kb_search": handle_kb_search,
    "kb_concept": handle_kb_concept,
    "kb_topic": handle_kb_topic,
    "kb_pattern": handle_kb_pattern,
    "kb_error": handle_kb_error,
    "kb_command": handle_kb_command,
    "kb_status": handle_kb_status,
    "kb_load": handle_kb_load,
}
