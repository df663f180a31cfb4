"""Constants for dots."""

from __future__ import annotations

# Store layout
DOTS_DIRNAME = ".dots"
ARCHIVE_DIRNAME = "archive"
ISSUE_SUFFIX = ".md"
CONFIG_FILENAME = "config.toml"

# Environment variable naming the scope used by `dot open` when -s is omitted
DEFAULT_SCOPE_ENV = "DOTS_DEFAULT_SCOPE"

# Identifiers are interpolated into paths and headers; the limit is in UTF-8 bytes
MAX_ID_LENGTH = 128
ID_FORBIDDEN_SUBSTRINGS = ("/", "\\", "..")
ID_FORBIDDEN_CHARS = frozenset("#:'\"")

# Sequence numbers are padded to 3 digits, 4 once past 999
ID_NUMBER_WIDTH = 3
ID_NUMBER_WIDE_WIDTH = 4
ID_NUMBER_WIDE_THRESHOLD = 999

# Priorities (lower is more urgent). Storage does not enforce the range;
# the CLI clamps to it.
DEFAULT_PRIORITY = 2
MIN_PRIORITY = 0
MAX_PRIORITY = 9

# The only dependency type the store knows about
DEP_TYPE_BLOCKERS = "blockers"
VALID_DEP_TYPES: frozenset[str] = frozenset({DEP_TYPE_BLOCKERS})

# Record header keys, in serialization order
KEY_TITLE = "title"
KEY_STATUS = "status"
KEY_PRIORITY = "priority"
KEY_CREATED_AT = "created-at"
KEY_CLOSED_AT = "closed-at"
KEY_CLOSE_REASON = "close-reason"
KEY_BLOCKERS = "blockers"

# Characters that force a header scalar to be double-quoted
QUOTE_TRIGGER_CHARS = frozenset("\n\r:#\"'\\")

# Color mappings for CLI display
STATUS_COLORS = {
    "open": "bright_green",
    "active": "bright_blue",
    "closed": "white",
}

PRIORITY_COLORS = {
    0: "bright_red",
    1: "yellow",
    2: "white",
    3: "cyan",
}
