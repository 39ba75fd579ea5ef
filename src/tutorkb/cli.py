"""tutorkb CLI -- load, query and maintain the tutoring knowledge base."""

import argparse
import json
import logging
import os
import sys
import time

logger = logging.getLogger("tutorkb.cli")


def _fail(message: str) -> None:
    from tutorkb.cli_ui import print_error

    print_error(message)
    sys.exit(1)


def _print_response(response, subject: str, elapsed: float, use_json: bool) -> None:
    """Print a KnowledgeResponse as JSON or rendered Markdown."""
    if use_json:
        out = response.to_dict()
        out["elapsed_s"] = round(elapsed, 3)
        print(json.dumps(out, indent=2, ensure_ascii=False))
        return

    if not response.has_results():
        print(f"No results for {subject} ({elapsed:.2f}s)")
        return

    from tutorkb.cli_ui import print_markdown

    print_markdown(response.formatted)
    print(f"\nConfidence: {response.confidence:.2f} ({elapsed:.2f}s)")


def _run_lookup(fn, *fn_args):
    """Call a bridge lookup, timing it and reporting failures."""
    start = time.monotonic()
    try:
        result = fn(*fn_args)
    except Exception as e:
        logger.error("%s failed: %s", fn.__name__, e)
        _fail(f"knowledge lookup failed: {e}")
    return result, time.monotonic() - start


# ---------------------------------------------------------------------------
# Lookup commands
# ---------------------------------------------------------------------------


def cmd_search(args):
    """Search concepts and patterns by free text."""
    from tutorkb.bridge import search

    text = " ".join(args.query_text)
    response, elapsed = _run_lookup(search, text)
    _print_response(response, f'"{text}"', elapsed, args.json)


def cmd_concept(args):
    """Explain a concept."""
    from tutorkb.bridge import explain_concept

    topic = " ".join(args.topic)
    response, elapsed = _run_lookup(explain_concept, topic)
    _print_response(response, f'concept "{topic}"', elapsed, args.json)


def cmd_pattern(args):
    from tutorkb.bridge import find_pattern

    use_case = " ".join(args.use_case)
    response, elapsed = _run_lookup(find_pattern, use_case)
    _print_response(response, f'pattern "{use_case}"', elapsed, args.json)


def cmd_error(args):
    from tutorkb.bridge import explain_error

    response, elapsed = _run_lookup(explain_error, args.error_code)
    _print_response(response, f"error {args.error_code}", elapsed, args.json)


def cmd_command(args):
    from tutorkb.bridge import find_command

    action = " ".join(args.action)
    response, elapsed = _run_lookup(find_command, args.tool, action)
    _print_response(response, f'{args.tool} "{action}"', elapsed, args.json)


def cmd_topic(args):
    """List every concept under an exact topic id."""
    from tutorkb.bridge import topic_concepts

    concepts, elapsed = _run_lookup(topic_concepts, args.topic)

    if args.json:
        print(json.dumps({"topic": args.topic, "concepts": [c.to_dict() for c in concepts]}, indent=2, ensure_ascii=False))
        return
    if not concepts:
        print(f'No concepts filed under topic "{args.topic}" ({elapsed:.2f}s)')
        return

    from tutorkb.cli_ui import print_table

    rows = [(c.id, c.title, str(len(c.code_examples))) for c in concepts]
    print_table(f"Topic: {args.topic}", ["ID", "Title", "Examples"], rows, styles=["dim", "bold", "cyan"])
    print(f"\n{len(concepts)} concept(s) ({elapsed:.2f}s)")


# ---------------------------------------------------------------------------
# Maintenance commands
# ---------------------------------------------------------------------------


def cmd_load(args):
    """Load source documents from a knowledge directory."""
    from tutorkb.bridge import load_directory

    try:
        stats = load_directory(args.directory)
    except (OSError, ValueError) as e:
        logger.error("load failed: %s", e)
        _fail(f"Load failed: {e}")
    if args.json:
        print(json.dumps(stats.to_dict(), indent=2))
    else:
        print(stats)


def cmd_stats(args):
    """Show record counts, topics and tools."""
    from tutorkb.bridge import status

    st = status()
    if args.json:
        print(json.dumps(st, indent=2, default=str))
        return
    if "error" in st:
        _fail(f"Status check failed: {st['error']}")

    from tutorkb.cli_ui import print_header, print_kv, print_table

    print_header("tutorkb Stats")
    pairs = [
        ("Database", st["database"]),
        ("Concepts", str(st["concepts"])),
        ("Patterns", str(st["patterns"])),
        ("Errors", str(st["errors"])),
        ("Commands", str(st["commands"])),
        ("Index in sync", "yes" if st["index_in_sync"] else "no"),
    ]
    if "db_size_mb" in st:
        pairs.append(("DB size", f"{st['db_size_mb']:.2f} MB"))
    print_kv(pairs)
    if st["topics"]:
        print()
        print_table("Topics", ["Topic", "Concepts"], sorted(st["topics"].items()), styles=["bold", "cyan"])
    if st["tools"]:
        print()
        print_table("Tools", ["Tool", "Commands"], sorted(st["tools"].items()), styles=["bold", "cyan"])


def cmd_validate(args):
    """Validate the FTS5 indexes against their tables."""
    from tutorkb.bridge import check_index, status
    from tutorkb.cli_ui import print_header, print_section, print_status_line, print_summary, print_table

    errors = 0
    print_header("tutorkb Validate")

    print_section("FTS5 Index")
    results = check_index(repair=args.repair)
    for index, result in results.items():
        if result == "ok":
            print_status_line("ok", f"{index} integrity check passed")
        else:
            errors += 1
            print_status_line("fail", f"{index}: {result}")

    print_section("Table Counts")
    st = status()
    if "error" in st:
        errors += 1
        print_status_line("fail", st["error"])
    else:
        print_table(
            None,
            ["Table", "Rows", "Index rows"],
            [
                ("concepts", str(st["concepts"]), str(st["index"]["concepts_fts"])),
                ("patterns", str(st["patterns"]), str(st["index"]["patterns_fts"])),
                ("errors", str(st["errors"]), "-"),
                ("commands", str(st["commands"]), "-"),
            ],
        )
        if not st["index_in_sync"]:
            errors += 1
            print_status_line("fail", "index row counts differ from table row counts")

    print()
    print_summary(errors, 0)
    sys.exit(1 if errors > 0 else 0)


def cmd_export(args):
    from tutorkb.bridge import export_knowledge

    try:
        print(export_knowledge(args.filepath))
    except OSError as e:
        logger.error("export failed: %s", e)
        _fail(f"Export failed: {e}")


def cmd_import(args):
    from tutorkb.bridge import import_knowledge

    try:
        print(import_knowledge(args.filepath, clear_existing=not args.no_clear))
    except (OSError, ValueError) as e:
        logger.error("import failed: %s", e)
        _fail(f"Import failed: {e}")


def cmd_serve(args):
    """Run the MCP server (stdio mode)."""
    import asyncio

    from tutorkb.server.mcp_server import main

    asyncio.run(main())


def cmd_serve_http(args):
    """Run the MCP server over streamable HTTP."""
    import asyncio

    from tutorkb.server.http_server import api_key_from_env, run_http

    asyncio.run(run_http(args.host, args.port, api_key_from_env()))


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="tutorkb",
        description="tutorkb -- queryable knowledge base for a language tutoring assistant",
    )
    parser.add_argument("--db", help="Database path (overrides $TUTORKB_DB)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- Lookup commands ---
    search_parser = subparsers.add_parser("search", help="Search concepts and patterns")
    search_parser.add_argument("query_text", nargs="+", help="Search text")
    search_parser.add_argument("--json", action="store_true", help="Output as JSON")

    concept_parser = subparsers.add_parser("concept", help="Explain a concept")
    concept_parser.add_argument("topic", nargs="+", help="Concept or topic")
    concept_parser.add_argument("--json", action="store_true", help="Output as JSON")

    topic_parser = subparsers.add_parser("topic", help="List concepts under an exact topic id")
    topic_parser.add_argument("topic", help="Topic id, e.g. ownership")
    topic_parser.add_argument("--json", action="store_true", help="Output as JSON")

    pattern_parser = subparsers.add_parser("pattern", help="Find patterns for a use case")
    pattern_parser.add_argument("use_case", nargs="+", help="Use case")
    pattern_parser.add_argument("--json", action="store_true", help="Output as JSON")

    error_parser = subparsers.add_parser("error", help="Explain a compiler error code")
    error_parser.add_argument("error_code", help="Error code, e.g. E0382")
    error_parser.add_argument("--json", action="store_true", help="Output as JSON")

    command_parser = subparsers.add_parser("command", help="Find toolchain commands")
    command_parser.add_argument("tool", help="Tool: cargo, rustup or rust")
    command_parser.add_argument("action", nargs="+", help="Keyword to match")
    command_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # --- Maintenance commands ---
    load_parser = subparsers.add_parser("load", help="Load source JSON documents")
    load_parser.add_argument("directory", nargs="?", help="Knowledge directory (default: $TUTORKB_KNOWLEDGE_DIR or ./knowledge)")
    load_parser.add_argument("--json", action="store_true", help="Output as JSON")

    stats_parser = subparsers.add_parser("stats", help="Show record counts, topics and tools")
    stats_parser.add_argument("--json", action="store_true", help="Output as JSON")

    validate_parser = subparsers.add_parser("validate", help="Check FTS5 index integrity")
    validate_parser.add_argument("--repair", action="store_true", help="Rebuild indexes that fail the check")

    export_parser = subparsers.add_parser("export", help="Export every record to JSON")
    export_parser.add_argument("filepath", help="Output file")

    import_parser = subparsers.add_parser("import", help="Import records from an export file")
    import_parser.add_argument("filepath", help="Export file")
    import_parser.add_argument("--no-clear", action="store_true", help="Keep existing records")

    # --- Server commands ---
    subparsers.add_parser("serve", help="Run the MCP server (stdio)")
    http_parser = subparsers.add_parser("serve-http", help="Run the MCP server over HTTP")
    http_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    http_parser.add_argument("--port", type=int, default=8765, help="HTTP port (default: 8765)")

    args = parser.parse_args(argv)

    logging.basicConfig(level=os.environ.get("TUTORKB_LOG_LEVEL", "WARNING").upper(), stream=sys.stderr)
    if args.db:
        os.environ["TUTORKB_DB"] = args.db

    commands = {
        "search": cmd_search,
        "concept": cmd_concept,
        "topic": cmd_topic,
        "pattern": cmd_pattern,
        "error": cmd_error,
        "command": cmd_command,
        "load": cmd_load,
        "stats": cmd_stats,
        "validate": cmd_validate,
        "export": cmd_export,
        "import": cmd_import,
        "serve": cmd_serve,
        "serve-http": cmd_serve_http,
    }

    if args.command in commands:
        commands[args.command](args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
