"""Tests for KnowledgeQuery, SearchResults and confidence scoring."""
import pytest

from tutorkb.loader import KnowledgeLoader
from tutorkb.models import CodeExample, Command, Concept, ErrorExplanation, Pattern
from tutorkb.query import (
    KnowledgeQuery,
    SearchResults,
    build_match_expression,
    confidence,
    format_error,
)


@pytest.fixture
def query(mem_store, knowledge_dir):
    KnowledgeLoader(mem_store).load_all_from_directory(knowledge_dir)
    return KnowledgeQuery(mem_store)


# ============================================================================
# Match expressions
# ============================================================================


@pytest.mark.parametrize("text, expected", [
    ("ownership", '"ownership"'),
    ("move semantics?", '"move" OR "semantics"'),
    ('say "hi" AND (NOT', '"say" OR "hi" OR "AND" OR "NOT"'),
    ("snake_case", '"snake" OR "case"'),
    ("", ""),
    ("?! --", ""),
])
def test_build_match_expression(text, expected):
    assert build_match_expression(text) == expected


def test_fts_syntax_in_user_text_is_harmless(query):
    assert query.search_concepts('"unbalanced AND ( OR *') == []
    assert query.find_patterns("NEAR(a b) -- ^") == []


def test_punctuation_only_returns_empty(query):
    assert query.search_concepts("???") == []
    assert query.search_all("...").is_empty()


# ============================================================================
# Confidence
# ============================================================================


@pytest.mark.parametrize("total, expected", [
    (0, 0.0),
    (1, 0.58),
    (2, 0.66),
    (3, 0.74),
    (4, 0.82),
    (5, 0.9),
    (50, 0.9),
])
def test_confidence_values(total, expected):
    assert confidence(total) == pytest.approx(expected)


def test_confidence_monotonic_and_saturating():
    scores = [confidence(n) for n in range(30)]
    assert all(a <= b for a, b in zip(scores, scores[1:]))
    assert max(scores) == pytest.approx(0.9)


def test_search_results_confidence():
    results = SearchResults(concepts=[Concept(id="a", topic="t", title="A")] * 2)
    assert results.total() == 2
    assert results.confidence() == pytest.approx(0.66)


# ============================================================================
# Query operations
# ============================================================================


def test_search_concepts(query):
    results = query.search_concepts("ownership")
    assert {c.id for c in results} == {"ownership-move-semantics", "ownership-borrowing"}


def test_search_concepts_ranks_better_match_first(mem_store):
    mem_store.store_concept(Concept(id="t-a", topic="t", title="Lifetimes", explanation="Lifetimes annotate references."))
    mem_store.store_concept(Concept(id="t-b", topic="t", title="Borrow checker", explanation="The borrow checker validates every borrow."))
    results = KnowledgeQuery(mem_store).search_concepts("borrow checker")
    assert [c.id for c in results] == ["t-b"]


def test_search_limit(mem_store):
    for i in range(12):
        mem_store.store_concept(Concept(id=f"t-{i}", topic="traits", title=f"Trait {i}"))
    q = KnowledgeQuery(mem_store)
    assert len(q.search_concepts("traits")) == 10
    assert len(q.search_concepts("traits", limit=3)) == 3


def test_find_patterns(query):
    assert [p.id for p in query.find_patterns("builder")] == ["creational-patterns-builder-pattern"]


def test_search_by_topic(query):
    assert [c.title for c in query.search_by_topic("ownership")] == ["Move Semantics", "Borrowing"]
    assert query.search_by_topic("owner") == []


def test_explain_error(query):
    assert query.explain_error("E0382").title == "Borrow of moved value"
    assert query.explain_error("E9999") is None


def test_search_commands(query):
    assert [c.command for c in query.search_commands("cargo", "TEST")] == ["test"]
    assert query.search_commands("rustup", "test") == []


def test_get_tool_commands(query):
    assert [c.command for c in query.get_tool_commands("cargo")] == ["build", "test"]


def test_search_all_limits_and_excludes_commands(mem_store):
    for i in range(7):
        mem_store.store_concept(Concept(id=f"c-{i}", topic="cargo", title=f"Cargo concept {i}"))
        mem_store.store_pattern(Pattern(id=f"p-{i}", name=f"Cargo pattern {i}"))
    mem_store.store_command(Command(tool="cargo", command="build"))
    results = KnowledgeQuery(mem_store).search_all("cargo")
    assert len(results.concepts) == 5
    assert len(results.patterns) == 5
    assert results.commands == []
    assert results.confidence() == pytest.approx(0.9)


def test_query_does_not_mutate(query):
    before = (query.store.count_concepts(), query.store.count_patterns(), query.store.count_commands())
    query.search_all("ownership builder")
    query.search_commands("cargo", "build")
    after = (query.store.count_concepts(), query.store.count_patterns(), query.store.count_commands())
    assert before == after


# ============================================================================
# Formatting
# ============================================================================


def test_empty_results_format_to_nothing():
    results = SearchResults()
    assert results.is_empty()
    assert results.total() == 0
    assert results.format() == ""


def test_format_concept():
    concept = Concept(
        id="o-m",
        topic="ownership",
        title="Move Semantics",
        explanation="Moves.",
        code_examples=[CodeExample(title="Move", code="let b = a;", explanation="a is moved")],
    )
    assert SearchResults(concepts=[concept]).format() == (
        "## Concepts\n\n"
        "### Move Semantics\n"
        "**Topic:** ownership\n\n"
        "Moves.\n\n"
        "**Examples:**\n"
        "\n**Move:**\n```rust\nlet b = a;\n```\n"
        "a is moved\n"
        "\n"
    )


def test_format_pattern_and_command():
    pattern = Pattern(id="c-b", name="Builder", description="Step by step.", template="B::new()", when_to_use="Creational")
    command = Command(tool="cargo", command="build", description="Compile", examples=["cargo build"])
    text = SearchResults(patterns=[pattern], commands=[command]).format()
    assert "## Concepts" not in text
    assert text == (
        "## Patterns\n\n"
        "### Builder\n"
        "Step by step.\n\n"
        "**When to use:** Creational\n\n"
        "```rust\nB::new()\n```\n\n"
        "## Commands\n\n"
        "### cargo build\n"
        "Compile\n\n"
        "**Examples:**\n"
        "- `cargo build`\n"
        "\n"
    )


def test_format_section_order(query):
    results = query.search_all("ownership builder")
    results.commands = query.search_commands("cargo", "build")
    text = results.format()
    assert text.index("## Concepts") < text.index("## Patterns") < text.index("## Commands")


def test_to_dict(query):
    data = query.search_all("builder").to_dict()
    assert data["patterns"][0]["name"] == "Builder Pattern"
    assert data["commands"] == []


def test_format_error():
    text = format_error(ErrorExplanation(
        error_code="E0382", title="Borrow of moved value", explanation="Moved.",
        example_bad="bad()", fix_strategies=["Clone"],
    ))
    assert text.startswith("## Error E0382: Borrow of moved value\n\n")
    assert "```rust\nbad()\n```" in text
    assert "**Corrected code:**" not in text
    assert "- Clone\n" in text
