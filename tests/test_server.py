"""tutorkb MCP handler tests -- full handler coverage through the bridge."""
import pytest

from tutorkb.server.handlers import HANDLERS, _clamp_int, mcp_error, mcp_response
from tutorkb.server.tool_schemas import TOOL_SCHEMAS


# ============================================================================
# Schema / Registry Tests
# ============================================================================

def test_all_tools_have_handlers():
    """Every tool in TOOL_SCHEMAS should have a handler."""
    for schema in TOOL_SCHEMAS:
        assert schema["name"] in HANDLERS, f"Missing handler for {schema['name']}"


def test_tool_schemas_valid():
    for schema in TOOL_SCHEMAS:
        assert "name" in schema
        assert "description" in schema
        assert schema["inputSchema"]["type"] == "object"
        assert schema["name"].startswith("kb_")


def test_handler_count():
    assert set(HANDLERS) == {s["name"] for s in TOOL_SCHEMAS}
    assert len(TOOL_SCHEMAS) == 8


def test_response_helpers():
    assert mcp_response("hi") == {"content": [{"type": "text", "text": "hi"}]}
    err = mcp_error("boom")
    assert err["isError"] is True
    assert err["content"][0]["text"] == "Error: boom"


@pytest.mark.parametrize("value, expected", [(5, 5), ("7", 7), (0, 1), (10**9, 10000), ("x", 20), (None, 20)])
def test_clamp_int(value, expected):
    assert _clamp_int(value, default=20) == expected


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def _bridge(_reset_bridge):
    yield


@pytest.fixture
def loaded(knowledge_dir):
    """Load the test knowledge directory through the bridge."""
    from tutorkb.bridge import load_directory

    return load_directory(str(knowledge_dir))


def _text(result):
    return result["content"][0]["text"]


# ============================================================================
# kb_load / kb_status
# ============================================================================

@pytest.mark.asyncio
async def test_kb_load(knowledge_dir):
    result = await HANDLERS["kb_load"]({"directory": str(knowledge_dir)})
    assert not result.get("isError")
    assert _text(result) == "Loaded 2 concepts, 1 patterns, 1 errors, 3 commands (total: 7)"


@pytest.mark.asyncio
async def test_kb_load_missing_directory(tmp_path):
    result = await HANDLERS["kb_load"]({"directory": str(tmp_path / "nope")})
    assert result["isError"]
    assert "not found" in _text(result)


@pytest.mark.asyncio
async def test_kb_load_malformed(tmp_path):
    (tmp_path / "rust_core_concepts.json").write_text("[]")
    result = await HANDLERS["kb_load"]({"directory": str(tmp_path)})
    assert result["isError"]
    assert "Load failed" in _text(result)


@pytest.mark.asyncio
async def test_kb_status(loaded):
    result = await HANDLERS["kb_status"]({})
    text = _text(result)
    assert "**Concepts:** 2" in text
    assert "**Commands:** 3" in text
    assert "**Index in sync:** Yes" in text
    assert "- ownership (2)" in text
    assert "- cargo (2)" in text


# ============================================================================
# Lookup tools
# ============================================================================

@pytest.mark.asyncio
async def test_kb_search(loaded):
    result = await HANDLERS["kb_search"]({"query": "ownership"})
    text = _text(result)
    assert not result.get("isError")
    assert "## Concepts" in text
    assert "**Confidence:** 0.66" in text


@pytest.mark.asyncio
async def test_kb_search_requires_query():
    result = await HANDLERS["kb_search"]({"query": "  "})
    assert result["isError"]


@pytest.mark.asyncio
async def test_kb_search_no_results(loaded):
    result = await HANDLERS["kb_search"]({"query": "monads"})
    assert not result.get("isError")
    assert "No knowledge found" in _text(result)


@pytest.mark.asyncio
async def test_kb_concept(loaded):
    text = _text(await HANDLERS["kb_concept"]({"topic": "move semantics"}))
    assert "### Move Semantics" in text


@pytest.mark.asyncio
async def test_kb_topic(loaded):
    text = _text(await HANDLERS["kb_topic"]({"topic": "ownership", "limit": 1}))
    assert "### Move Semantics" in text
    assert "### Borrowing" not in text
    assert "1 more concepts not shown" in text


@pytest.mark.asyncio
async def test_kb_topic_unknown(loaded):
    text = _text(await HANDLERS["kb_topic"]({"topic": "monads"}))
    assert "No concepts filed under topic 'monads'" in text


@pytest.mark.asyncio
async def test_kb_pattern(loaded):
    text = _text(await HANDLERS["kb_pattern"]({"use_case": "builder"}))
    assert "### Builder Pattern" in text
    assert "verify before relying on it" in text


@pytest.mark.asyncio
async def test_kb_error_normalizes_code(loaded):
    text = _text(await HANDLERS["kb_error"]({"error_code": " e0382 "}))
    assert "## Error E0382: Borrow of moved value" in text
    assert "- Clone the value" in text


@pytest.mark.asyncio
async def test_kb_command(loaded):
    text = _text(await HANDLERS["kb_command"]({"tool": "Cargo", "action": "release"}))
    assert "No knowledge found" in text
    text = _text(await HANDLERS["kb_command"]({"tool": "cargo", "action": "compile"}))
    assert "### cargo build" in text


@pytest.mark.asyncio
async def test_kb_command_requires_both():
    result = await HANDLERS["kb_command"]({"tool": "cargo"})
    assert result["isError"]


@pytest.mark.asyncio
async def test_lookup_failure_reported(loaded, monkeypatch):
    import tutorkb.bridge

    def boom(query):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(tutorkb.bridge, "search", boom)
    result = await HANDLERS["kb_search"]({"query": "ownership"})
    assert result["isError"]
    assert _text(result) == "Error: knowledge lookup failed: disk on fire"
