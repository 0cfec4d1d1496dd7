"""Default configurations for codebase-indexer."""

# Default file extensions to index (semantic grammars first, then fallback-only)
DEFAULT_FILE_EXTENSIONS = [
    ".ts",  # TypeScript (tree-sitter)
    ".tsx",  # React TSX (tree-sitter)
    ".js",  # JavaScript (tree-sitter)
    ".jsx",  # React JSX (tree-sitter)
    ".mjs",  # ES modules (tree-sitter)
    ".cjs",  # CommonJS modules (tree-sitter)
    ".py",  # Python (tree-sitter)
    ".pyw",  # Python (tree-sitter)
    ".go",  # Go (tree-sitter)
    ".rs",  # Rust (tree-sitter)
    ".java",  # Java (tree-sitter)
    ".cpp",  # C++ (tree-sitter)
    ".cc",  # C++ (tree-sitter)
    ".cxx",  # C++ (tree-sitter)
    ".hpp",  # C++ headers (tree-sitter)
    ".c",  # C (tree-sitter)
    ".h",  # C headers (tree-sitter)
    ".cs",  # C# (tree-sitter)
    ".rb",  # Ruby (tree-sitter)
    ".php",  # PHP (tree-sitter)
    ".json",  # JSON (grammar without query, lexical chunks)
    ".vue",  # Vue SFC (lexical chunks)
    ".svelte",  # Svelte (lexical chunks)
    ".md",  # Markdown documentation (lexical chunks)
    ".yaml",  # YAML configuration (lexical chunks)
    ".yml",  # YAML configuration (lexical chunks)
    ".toml",  # TOML configuration (lexical chunks)
    ".sql",  # SQL (lexical chunks)
    ".sh",  # Shell scripts (lexical chunks)
]

# Directories never descended into (dot-directories are skipped as well)
DEFAULT_IGNORED_DIRS = [
    "node_modules",
    "dist",
    "build",
    "out",
    "target",
    "vendor",
    "coverage",
    "__pycache__",
    "venv",
    "env",
    "bin",
    "obj",
]

# Extension (without dot) to tree-sitter grammar id
LANGUAGE_MAP: dict[str, str] = {
    "ts": "typescript",
    "tsx": "tsx",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "py": "python",
    "pyw": "python",
    "go": "go",
    "rs": "rust",
    "java": "java",
    "cpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "c": "c",
    "h": "c",
    "hpp": "cpp",
    "cs": "c_sharp",
    "rb": "ruby",
    "php": "php",
    "json": "json",
}

# Size guard: files whose text is longer than this many characters are skipped
DEFAULT_MAX_FILE_SIZE = 1024 * 1024

# Lexical fallback window, in lines
DEFAULT_CHUNK_SIZE = 80
LEXICAL_OVERLAP_LINES = 10

# Captures whose end row minus start row is below this are dropped
MIN_CAPTURE_ROW_SPAN = 3

# Worker pipeline limits
INDEX_CONCURRENCY = 10
BATCH_CONCURRENCY = 5
RESULT_BATCH_SIZE = 50
PROGRESS_EVERY_FILES = 10

# Embedding input is truncated to this many characters
MAX_EMBEDDING_TEXT_LENGTH = 8000

# Minimum interval between non-forced progress notifications
PROGRESS_THROTTLE_MS = 100

# Remote embedding providers and their defaults
EMBEDDING_PROVIDER_DEFAULTS: dict[str, dict[str, str]] = {
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "model": "text-embedding-3-small",
    },
    "jina": {
        "base_url": "https://api.jina.ai/v1",
        "model": "jina-embeddings-v2-base-code",
    },
    "voyage": {
        "base_url": "https://api.voyageai.com/v1",
        "model": "voyage-code-2",
    },
    "cohere": {
        "base_url": "https://api.cohere.com/v1",
        "model": "embed-english-v3.0",
    },
    "huggingface": {
        "base_url": "https://api-inference.huggingface.co/pipeline/feature-extraction",
        "model": "sentence-transformers/all-MiniLM-L6-v2",
    },
    "ollama": {
        "base_url": "http://localhost:11434",
        "model": "nomic-embed-text",
    },
    "local": {
        "base_url": "",
        "model": "sentence-transformers/all-MiniLM-L6-v2",
    },
}

DEFAULT_EMBEDDING_PROVIDER = "jina"
DEFAULT_EMBEDDING_TIMEOUT = 30.0
DEFAULT_EMBEDDING_BATCH_SIZE = 64

# Directory (under the workspace) holding the persistent index
INDEX_DIR_NAME = ".codebase-indexer"
