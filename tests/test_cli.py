"""Tests for the tutorkb CLI."""
import json

import pytest

from tutorkb.cli import main


@pytest.fixture(autouse=True)
def _bridge(_reset_bridge):
    yield


@pytest.fixture
def loaded(knowledge_dir, capsys):
    main(["load", str(knowledge_dir)])
    capsys.readouterr()
    return knowledge_dir


def _json_out(capsys):
    return json.loads(capsys.readouterr().out)


def test_load_prints_stats(knowledge_dir, capsys):
    main(["load", str(knowledge_dir)])
    assert capsys.readouterr().out.strip() == "Loaded 2 concepts, 1 patterns, 1 errors, 3 commands (total: 7)"


def test_load_json(knowledge_dir, capsys):
    main(["load", str(knowledge_dir), "--json"])
    assert _json_out(capsys) == {"concepts": 2, "patterns": 1, "errors": 1, "commands": 3, "total": 7}


def test_load_missing_directory_exits(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        main(["load", str(tmp_path / "missing")])
    assert exc_info.value.code == 1


def test_db_flag(tmp_path, knowledge_dir, capsys):
    db = tmp_path / "custom.db"
    main(["--db", str(db), "load", str(knowledge_dir)])
    assert db.exists()


def test_search_json(loaded, capsys):
    main(["search", "ownership", "--json"])
    data = _json_out(capsys)
    assert data["request"] == {"type": "search", "query": "ownership"}
    assert len(data["results"]["concepts"]) == 2
    assert data["confidence"] == pytest.approx(0.66)


def test_search_markdown(loaded, capsys):
    main(["search", "move", "semantics"])
    out = capsys.readouterr().out
    assert "Move Semantics" in out
    assert "Confidence: 0.58" in out


def test_search_no_results(loaded, capsys):
    main(["search", "monads"])
    assert 'No results for "monads"' in capsys.readouterr().out


def test_concept_and_pattern(loaded, capsys):
    main(["concept", "borrowing", "--json"])
    assert [c["title"] for c in _json_out(capsys)["results"]["concepts"]] == ["Borrowing"]
    main(["pattern", "builder", "--json"])
    assert [p["name"] for p in _json_out(capsys)["results"]["patterns"]] == ["Builder Pattern"]


def test_error_json(loaded, capsys):
    main(["error", "e0382", "--json"])
    data = _json_out(capsys)
    assert data["error"]["title"] == "Borrow of moved value"
    assert data["confidence"] == pytest.approx(0.58)


def test_command_json(loaded, capsys):
    main(["command", "cargo", "build", "--json"])
    assert [c["command"] for c in _json_out(capsys)["results"]["commands"]] == ["build"]


def test_topic(loaded, capsys):
    main(["topic", "ownership", "--json"])
    data = _json_out(capsys)
    assert [c["id"] for c in data["concepts"]] == ["ownership-move-semantics", "ownership-borrowing"]


def test_stats_json(loaded, capsys):
    main(["stats", "--json"])
    data = _json_out(capsys)
    assert data["concepts"] == 2
    assert data["index_in_sync"] is True
    assert data["tools"] == {"cargo": 2, "rustup": 1}


def test_validate_passes(loaded, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["validate"])
    assert exc_info.value.code == 0
    assert "All checks passed" in capsys.readouterr().out


def test_export_import(loaded, tmp_path, capsys):
    path = tmp_path / "backup.json"
    main(["export", str(path)])
    assert "Knowledge Export Complete" in capsys.readouterr().out
    main(["import", str(path)])
    assert "**Concepts:** 2" in capsys.readouterr().out
    main(["stats", "--json"])
    assert _json_out(capsys)["commands"] == 3


def test_import_invalid_record_exits_cleanly(loaded, tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"version": "tutorkb-v1", "concepts": [{"title": "no id"}]}))
    with pytest.raises(SystemExit) as exc_info:
        main(["import", str(path)])
    assert exc_info.value.code == 1
    assert "Import failed" in capsys.readouterr().err
    main(["stats", "--json"])
    assert _json_out(capsys)["concepts"] == 2


def test_lookup_failure_exits(loaded, monkeypatch, capsys):
    import tutorkb.bridge

    def boom(query):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(tutorkb.bridge, "search", boom)
    with pytest.raises(SystemExit) as exc_info:
        main(["search", "ownership"])
    assert exc_info.value.code == 1
    assert "knowledge lookup failed: disk on fire" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    main([])
    assert "usage: tutorkb" in capsys.readouterr().out
