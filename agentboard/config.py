#  AgentBoard - Configuration
#
#  Loads config.json and provides typed access to all settings.
#  Dot-notation path lookup: cfg("execution.build.max_turns")
#
#  Depends on: config.json (optional)
#  Used by:    all agentboard modules

import json
import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = Path(os.environ.get("AGENTBOARD_CONFIG", PROJECT_ROOT / "config.json"))
DATA_DIR = PROJECT_ROOT / "data"
DB_PATH = DATA_DIR / "agentboard.db"

# ---------------------------------------------------------------------------
# Load config
# ---------------------------------------------------------------------------

_config: dict = {}


def _load_config(path: Path | None = None):
    """Load configuration from JSON file (internal, called once at import time).

    Module-level constants below are snapshots from _config.
    Do not call this function after import; constants won't update.
    """
    global _config
    config_path = path or CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}. "
            "Copy config.example.json to config.json."
        )
    with open(config_path) as f:
        _config = json.load(f)


# Defaults apply when no config.json exists
if CONFIG_PATH.exists():
    _load_config()


def cfg(path: str, default=None):
    """Get a config value by dot-notation path.

    Example: cfg("execution.research.max_turns") -> 30
    """
    keys = path.split(".")
    val = _config
    for key in keys:
        if isinstance(val, dict) and key in val:
            val = val[key]
        else:
            return default
    return val


# ---------------------------------------------------------------------------
# Convenience constants
# ---------------------------------------------------------------------------

PORT = cfg("server.port", 5300)
CORS_ORIGINS = cfg("server.cors_origins", [
    "http://localhost:3000",
    f"http://localhost:{PORT}",
    "http://127.0.0.1:3000",
    f"http://127.0.0.1:{PORT}",
])

# Agent runtime
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")
AGENT_MODEL = cfg("agent.model", "claude-sonnet-4-6")
AGENT_PERMISSION_MODE = cfg("agent.permission_mode", "bypassPermissions")

# Execution
# Relative paths resolve against the project root
WORKSPACE_ROOT = PROJECT_ROOT / cfg("execution.workspace_root", "../agentboard-workspace")
PREVIEW_CHARS = cfg("execution.preview_chars", 200)
FALLBACK_OUTPUT = cfg("execution.fallback_output", "Task completed successfully.")
EXECUTE_RATE_LIMIT = cfg("execution.rate_limit", "10/minute")

BUILD_ALLOWED_TOOLS: list[str] = cfg(
    "execution.build.allowed_tools", ["Read", "Write", "Edit", "Bash", "Glob", "Grep"],
)
BUILD_MAX_TURNS = cfg("execution.build.max_turns", 50)
RESEARCH_ALLOWED_TOOLS: list[str] = cfg(
    "execution.research.allowed_tools", ["WebSearch", "WebFetch", "Read", "Grep", "Glob"],
)
RESEARCH_MAX_TURNS = cfg("execution.research.max_turns", 30)

# Capabilities that modify the workspace or run commands
MUTATING_TOOLS = frozenset({"Write", "Edit", "Bash", "NotebookEdit"})


# ---------------------------------------------------------------------------
# Startup validation
# ---------------------------------------------------------------------------

def validate_config():
    """Validate critical config values. Call during app startup (not at import time).

    Raises ConfigError for fatal issues, logs warnings for non-fatal ones.
    """
    import logging
    _logger = logging.getLogger("agentboard.config")

    # Fatal: port must be valid
    if not isinstance(PORT, int) or not (1 <= PORT <= 65535):
        raise ConfigError(f"server.port must be 1-65535, got {PORT}")

    # Fatal: turn limits must be positive
    for label, val in [("execution.build.max_turns", BUILD_MAX_TURNS),
                       ("execution.research.max_turns", RESEARCH_MAX_TURNS)]:
        if not isinstance(val, int) or val <= 0:
            raise ConfigError(f"{label} must be > 0, got {val}")

    if not isinstance(PREVIEW_CHARS, int) or PREVIEW_CHARS <= 0:
        raise ConfigError(f"execution.preview_chars must be > 0, got {PREVIEW_CHARS}")

    # Fatal: each mode needs at least one tool
    for label, tools in [("execution.build.allowed_tools", BUILD_ALLOWED_TOOLS),
                         ("execution.research.allowed_tools", RESEARCH_ALLOWED_TOOLS)]:
        if not tools:
            raise ConfigError(f"{label} must not be empty")

    # Fatal: research mode is read-only
    mutating = sorted(MUTATING_TOOLS.intersection(RESEARCH_ALLOWED_TOOLS))
    if mutating:
        raise ConfigError(
            f"execution.research.allowed_tools must be read-only, found {', '.join(mutating)}"
        )

    # Fatal: CORS origins must be valid URLs
    for origin in CORS_ORIGINS:
        if not isinstance(origin, str):
            raise ConfigError(f"CORS origin must be a string, got {type(origin).__name__}")
        if origin == "*":
            _logger.warning("CORS origin '*' allows all origins; not recommended for production")
        elif not origin.startswith(("http://", "https://")):
            raise ConfigError(
                f"CORS origin must start with http:// or https://, got '{origin}'"
            )

    if not ANTHROPIC_API_KEY:
        _logger.warning(
            "ANTHROPIC_API_KEY is not set. Agent runs will fail unless the "
            "Claude CLI is already authenticated."
        )


class ConfigError(Exception):
    """Raised when critical configuration is invalid."""
