"""
tutorkb Bridge -- High-level API over the knowledge store.

Provides the public interface used by the MCP server handlers and the CLI.
All functions are thin wrappers around a lazily created KnowledgeStore
singleton.

Public API:
    Load:        load_directory
    Lookup:      search, explain_concept, find_pattern, explain_error,
                 find_command, topic_concepts
    Health:      status, check_index
    Export:      export_knowledge, import_knowledge
    Testing:     reset_store
"""

import atexit
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from tutorkb.fetcher import KnowledgeFetcher, KnowledgeResponse
from tutorkb.loader import KnowledgeLoader, LoadStats
from tutorkb.models import Concept
from tutorkb.query import KnowledgeQuery
from tutorkb.sqlite_store import KnowledgeStore

logger = logging.getLogger("tutorkb.bridge")


def knowledge_dir() -> Path:
    """Source directory for `load` and first-run auto-load."""
    return Path(os.environ.get("TUTORKB_KNOWLEDGE_DIR", "knowledge"))


# ---------------------------------------------------------------------------
# Lazy singleton
# ---------------------------------------------------------------------------

_store_instance: Optional[KnowledgeStore] = None
_store_lock = threading.Lock()


def _get_store() -> KnowledgeStore:
    """Get or create the KnowledgeStore singleton (thread-safe)."""
    global _store_instance
    if _store_instance is not None:
        return _store_instance
    with _store_lock:
        if _store_instance is not None:
            return _store_instance
        store = KnowledgeStore()

        # First run against an empty database: pull in the source documents.
        source = knowledge_dir()
        loader = KnowledgeLoader(store)
        if loader.get_stats().total() == 0 and source.is_dir():
            stats = loader.load_all_from_directory(source)
            logger.info("Startup: auto-loaded %s", stats)

        _store_instance = store
        atexit.register(_close_store)
    return _store_instance


def _close_store():
    """Close the KnowledgeStore on process exit."""
    global _store_instance
    if _store_instance is not None:
        try:
            _store_instance.close()
        except Exception as e:
            logger.debug("Store close failed: %s", e)


def reset_store():
    """Reset the singleton (useful for testing)."""
    global _store_instance
    if _store_instance is not None:
        try:
            _store_instance.close()
        except Exception as e:
            logger.debug("Store close failed during reset: %s", e)
    _store_instance = None


def _fetcher() -> KnowledgeFetcher:
    return KnowledgeFetcher(KnowledgeQuery(_get_store()))


# ---------------------------------------------------------------------------
# Public API -- Load
# ---------------------------------------------------------------------------


def load_directory(directory: Optional[str] = None) -> LoadStats:
    """Load every source document found in ``directory`` (default: knowledge_dir())."""
    source = Path(directory) if directory else knowledge_dir()
    if not source.is_dir():
        raise FileNotFoundError(f"Knowledge directory not found: {source}")
    return KnowledgeLoader(_get_store()).load_all_from_directory(source)


# ---------------------------------------------------------------------------
# Public API -- Lookup
# ---------------------------------------------------------------------------


def search(query: str) -> KnowledgeResponse:
    """Concepts and patterns matching free text."""
    return _fetcher().search(query)


def explain_concept(topic: str) -> KnowledgeResponse:
    return _fetcher().explain_concept(topic)


def find_pattern(use_case: str) -> KnowledgeResponse:
    return _fetcher().find_pattern(use_case)


def explain_error(error_code: str) -> KnowledgeResponse:
    return _fetcher().explain_error(error_code.strip().upper())


def find_command(tool: str, action: str) -> KnowledgeResponse:
    return _fetcher().find_command(tool.strip().lower(), action)


def topic_concepts(topic: str) -> List[Concept]:
    """All concepts filed under ``topic`` (exact match)."""
    return KnowledgeQuery(_get_store()).search_by_topic(topic)


# ---------------------------------------------------------------------------
# Public API -- Health
# ---------------------------------------------------------------------------


def status() -> Dict[str, Any]:
    """Return a machine-readable status dict."""
    db = _get_store()
    try:
        stats = db.stats()
        stats["total"] = stats["concepts"] + stats["patterns"] + stats["errors"] + stats["commands"]
        stats["topics"] = db.list_topics()
        stats["tools"] = db.list_tools()
        stats["index"] = db.index_counts()
        stats["index_in_sync"] = (
            stats["index"]["concepts_fts"] == stats["concepts"]
            and stats["index"]["patterns_fts"] == stats["patterns"]
        )
        stats["ok"] = stats["index_in_sync"]
        return stats
    except Exception as e:
        logger.error("Status check failed: %s", e)
        return {"ok": False, "error": str(e)}


def check_index(repair: bool = False) -> Dict[str, str]:
    """FTS5 integrity check on both indexes; optionally rebuild when it fails."""
    db = _get_store()
    results = db.check_index()
    if repair and any(v != "ok" for v in results.values()):
        logger.warning("FTS index check failed (%s); rebuilding", results)
        db.rebuild_index()
        results = db.check_index()
    return results


# ---------------------------------------------------------------------------
# Public API -- Export / Import
# ---------------------------------------------------------------------------


def export_knowledge(filepath: str) -> str:
    """Export every record to a JSON file."""
    db = _get_store()
    result = db.export_to_file(Path(filepath))

    output = "# Knowledge Export Complete\n\n"
    output += f"**File:** {result['filepath']}\n"
    output += f"**Concepts:** {result['concepts']}\n"
    output += f"**Patterns:** {result['patterns']}\n"
    output += f"**Errors:** {result['errors']}\n"
    output += f"**Commands:** {result['commands']}\n"
    output += f"**Exported:** {result['exported_at']}\n"

    logger.info("Exported knowledge base to %s", filepath)
    return output


def import_knowledge(filepath: str, clear_existing: bool = True) -> str:
    """Import records from a file written by export_knowledge."""
    db = _get_store()
    result = db.import_from_file(Path(filepath), clear_existing=clear_existing)

    output = "# Knowledge Import Complete\n\n"
    output += f"**File:** {result['filepath']}\n"
    output += f"**Concepts:** {result['concepts']}\n"
    output += f"**Patterns:** {result['patterns']}\n"
    output += f"**Errors:** {result['errors']}\n"
    output += f"**Commands:** {result['commands']}\n"
    output += f"**Cleared Existing:** {'Yes' if clear_existing else 'No'}\n"

    logger.info("Imported knowledge base from %s", filepath)
    return output


__all__ = [
    "load_directory",
    "search",
    "explain_concept",
    "find_pattern",
    "explain_error",
    "find_command",
    "topic_concepts",
    "status",
    "check_index",
    "export_knowledge",
    "import_knowledge",
    "reset_store",
]
