"""tutorkb MCP Tool Schemas -- 8 tools for knowledge lookup and maintenance."""

TOOL_SCHEMAS = [
    {
        "name": "kb_search",
        "description": "Search the knowledge base for concepts and patterns matching free text. Returns the top 5 of each as Markdown with a confidence score. Commands are not included; use kb_command for those.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Free-text search query"},
            },
            "required": ["query"],
        },
    },
    {
        "name": "kb_concept",
        "description": "Explain a language concept (e.g. 'ownership', 'borrowing', 'lifetimes'). Full-text search over concept topics, titles, explanations and tags.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "topic": {"type": "string", "description": "Concept or topic to explain"},
            },
            "required": ["topic"],
        },
    },
    {
        "name": "kb_topic",
        "description": "List every concept filed under an exact topic id (e.g. 'ownership').",
        "inputSchema": {
            "type": "object",
            "properties": {
                "topic": {"type": "string", "description": "Exact topic id"},
                "limit": {"type": "integer", "default": 20},
            },
            "required": ["topic"],
        },
    },
    {
        "name": "kb_pattern",
        "description": "Find reusable code patterns for a use case (e.g. 'builder', 'error handling').",
        "inputSchema": {
            "type": "object",
            "properties": {
                "use_case": {"type": "string", "description": "What you are trying to do"},
            },
            "required": ["use_case"],
        },
    },
    {
        "name": "kb_error",
        "description": "Explain a compiler error by its code (e.g. 'E0382'), with erroneous and corrected examples and fix strategies.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "error_code": {"type": "string", "description": "Compiler error code, e.g. E0382"},
            },
            "required": ["error_code"],
        },
    },
    {
        "name": "kb_command",
        "description": "Find toolchain commands. Matches the action as a substring of the command or its description (case-insensitive for ASCII).",
        "inputSchema": {
            "type": "object",
            "properties": {
                "tool": {"type": "string", "description": "Tool name: cargo, rustup or rust"},
                "action": {"type": "string", "description": "Keyword, e.g. 'test' or 'build'"},
            },
            "required": ["tool", "action"],
        },
    },
    {
        "name": "kb_status",
        "description": "Knowledge base status: record counts, topics, tools and full-text index health.",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "kb_load",
        "description": "Load source JSON documents from a knowledge directory into the store. Concepts, patterns and errors are upserted; commands are appended.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "directory": {"type": "string", "description": "Knowledge directory (default: $TUTORKB_KNOWLEDGE_DIR or ./knowledge)"},
            },
        },
    },
]
