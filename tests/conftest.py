"""tutorkb test configuration."""
import json
import os
import sys
import pytest
from pathlib import Path

# Ensure tutorkb package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

REPO_KNOWLEDGE_DIR = Path(__file__).parent.parent / "knowledge"

_ENV_VARS = ("TUTORKB_HOME", "TUTORKB_DB", "TUTORKB_KNOWLEDGE_DIR")


@pytest.fixture
def tmp_kb_dir(tmp_path):
    """Create a temporary tutorkb home and point every env var into it."""
    saved = {name: os.environ.get(name) for name in _ENV_VARS}
    kb_dir = tmp_path / ".tutorkb"
    kb_dir.mkdir()
    os.environ["TUTORKB_HOME"] = str(kb_dir)
    os.environ.pop("TUTORKB_DB", None)
    # No auto-load unless a test asks for it
    os.environ["TUTORKB_KNOWLEDGE_DIR"] = str(tmp_path / "no-knowledge")
    yield kb_dir
    for name, value in saved.items():
        if value is None:
            os.environ.pop(name, None)
        else:
            os.environ[name] = value


@pytest.fixture
def _reset_bridge(tmp_kb_dir):
    """Reset the bridge singleton so each test gets a fresh store."""
    from tutorkb.bridge import reset_store

    reset_store()
    yield
    reset_store()


@pytest.fixture
def store(tmp_kb_dir):
    """Create a fresh file-backed KnowledgeStore for testing."""
    from tutorkb.sqlite_store import KnowledgeStore
    s = KnowledgeStore(db_path=tmp_kb_dir / "test.db")
    yield s
    s.close()


@pytest.fixture
def mem_store():
    from tutorkb.sqlite_store import KnowledgeStore
    s = KnowledgeStore.open_in_memory()
    yield s
    s.close()


def write_source(directory: Path, name: str, data) -> Path:
    path = directory / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def knowledge_dir(tmp_path):
    """A knowledge directory with one small document per family."""
    d = tmp_path / "knowledge"
    d.mkdir()
    write_source(d, "rust_core_concepts.json", {
        "modules": [
            {
                "id": "ownership",
                "concepts": [
                    {
                        "name": "Move Semantics",
                        "description": "Assignment moves ownership of heap data.",
                        "rules": ["Each value has one owner"],
                        "key_points": ["Copy types are copied"],
                        "examples": [
                            {"title": "Move", "code": "let b = a;", "explanation": "a is moved"}
                        ],
                        "common_errors": ["E0382: borrow of moved value"],
                    },
                    {"name": "Borrowing", "description": "References borrow without taking ownership."},
                ],
            }
        ]
    })
    write_source(d, "rust_patterns_idioms.json", {
        "categories": [
            {
                "name": "Creational Patterns",
                "patterns": [
                    {
                        "name": "Builder Pattern",
                        "description": "Construct complex values step by step.",
                        "example": "Builder::new().port(80).build()",
                    }
                ],
            }
        ]
    })
    write_source(d, "rust_toolchain_cargo.json", {
        "sections": [
            {
                "name": "Cargo Basics",
                "commands": [
                    {
                        "command": "build",
                        "description": "Compile the current package",
                        "options": ["--release - Build with optimizations", "--verbose"],
                        "examples": ["cargo build --release"],
                    },
                    {"command": "test", "description": "Run the tests", "examples": ["cargo test"]},
                ],
            },
            {"name": "Rustup", "commands": [{"command": "update", "description": "Update toolchains"}]},
        ]
    })
    write_source(d, "rust_compiler_errors.json", {
        "errors": [
            {
                "code": "E0382",
                "title": "Borrow of moved value",
                "explanation": "A value was used after being moved.",
                "example_bad": "let b = a; a;",
                "example_good": "let b = a.clone(); a;",
                "fix_strategies": ["Clone the value", "Borrow instead"],
            }
        ]
    })
    return d
