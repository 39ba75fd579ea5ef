"""tutorkb -- Queryable knowledge base for a language tutoring assistant.

Direct Python API -- no MCP server required::

    from tutorkb import KnowledgeStore, KnowledgeLoader, KnowledgeQuery

    store = KnowledgeStore.open_in_memory()
    KnowledgeLoader(store).load_all_from_directory("knowledge")
    results = KnowledgeQuery(store).search_all("ownership")
    print(results.format())
"""

__version__ = "0.1.0"

from tutorkb.models import CodeExample, Command, CommandFlag, Concept, ErrorExplanation, Pattern
from tutorkb.sqlite_store import BlobDecodeError, KnowledgeStore
from tutorkb.loader import KnowledgeLoader, LoadStats, slugify
from tutorkb.query import KnowledgeQuery, SearchResults, build_match_expression, confidence
from tutorkb.fetcher import ConfidenceDecision, FetchRequest, KnowledgeFetcher, KnowledgeResponse

__all__ = [
    # Records
    "CodeExample",
    "CommandFlag",
    "Concept",
    "Pattern",
    "ErrorExplanation",
    "Command",
    # Store
    "KnowledgeStore",
    "BlobDecodeError",
    # Loading
    "KnowledgeLoader",
    "LoadStats",
    "slugify",
    # Query
    "KnowledgeQuery",
    "SearchResults",
    "build_match_expression",
    "confidence",
    # Fetcher
    "KnowledgeFetcher",
    "FetchRequest",
    "KnowledgeResponse",
    "ConfidenceDecision",
    # Meta
    "__version__",
]
