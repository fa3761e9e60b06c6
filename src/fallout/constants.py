
# --- Log and Debug ---
# Short aliases for module names to keep CLI/env concise
LOG_ALIAS_MAP = {
    "cache": "fallout.cache",
    "cc": "fallout.cache",
    "dir": "fallout.cache.directory",
    "walk": "fallout.cache.directory",
    "ret": "fallout.cache.retention",
    "grep": "fallout.grep",
    "match": "fallout.grep.matcher",
    "io": "fallout.io",
    "fs": "fallout.io.fs",
    "conf": "fallout.config",
    "fetch": "fallout.fetch",
    "cli": "fallout.cli",
}

# Top-level modules within fallout for auto-prefixing
KNOWN_TOP_MODULES = {
    "cache",
    "grep",
    "io",
    "utils",
    "config",
    "fetch",
    "format",
    "stats",
    "cli",
}

# Env var holding per-module log levels, "name=LEVEL,..."
LOG_LEVELS_ENV = "FALLOUT_LOG_LEVELS"


# --- Cache Layout ---
# Leaf file name: <timestamp><ext>
ENTRY_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"
ENTRY_EXT = ".log"
# Sidecar holding the freshest write timestamp, RFC 3339
CACHE_TIMESTAMP_NAME = ".timestamp"
CACHE_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
CACHE_SUBDIR = "fallout"

# --- Walker ---
# Entries buffered between the traversal thread and the consumer
WALK_QUEUE_SIZE = 64
# Seconds a blocked producer waits before checking for a stopped consumer
WALK_PUT_POLL_INTERVAL = 0.05


# --- Grep ---
# Name of the group wrapping the query inside a context pattern
QUERY_GROUP = "r"
GREP_QUEUE_SIZE = 64


# --- Configuration ---
CONFIG_ENV = "FALLOUT_CONFIG"
COLORS_ENV = "FALLOUT_COLORS"
CONFIG_SUBDIR = "fallout"
CONFIG_FILENAME = "config.yml"
DEFAULT_CLEAN_DAYS = 30

# Color palette letters, lowercase is normal, uppercase is bright
COLOR_LETTERS = {
    "a": "black",
    "b": "red",
    "c": "green",
    "d": "yellow",
    "e": "blue",
    "f": "magenta",
    "g": "cyan",
    "h": "white",
}
# query, match, path, separator
DEFAULT_COLORS = "BCDA"
COLOR_MODES = ("auto", "never", "always")
