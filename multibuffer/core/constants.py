"""Core constants for multibuffer.

The aggregate document layout is shared by the formatter, the change tracker
and anything that locates content inside an aggregate line. A line looks like:

    "    42   original text"
     ^^^^^^ ^ ^^
     |      | content prefix (CONTENT_PREFIX)
     |      single separator space
     right-justified line number (LINE_NUMBER_WIDTH)
"""

# Aggregate line layout
LINE_NUMBER_WIDTH = 6
LINE_NUMBER_SEPARATOR = " "
CONTENT_PREFIX = "  "
CONTENT_START_INDEX = LINE_NUMBER_WIDTH + len(LINE_NUMBER_SEPARATOR) + len(CONTENT_PREFIX)
MAX_GUTTER_LINE_NUMBER = 10**LINE_NUMBER_WIDTH - 1

# Bump whenever the layout above changes
FORMAT_VERSION = 1

FILE_HEADER_PREFIX = "=== "
SEARCH_HEADER = "Multi-Buffer Search"
REPLACE_HEADER = "Multi-Buffer Replace"

# Aggregate document identities
URI_SCHEME = "multibuffer"
URI_SUFFIX = ".multibuffer"

# Search defaults
DEFAULT_CONTEXT_LINES = 2
DEFAULT_INCLUDE_PATTERN = "**/*"
DEFAULT_DEBOUNCE_DELAY = 0.5
CONFIG_FILE_NAME = ".multibuffer.json"
ENV_PREFIX = "MULTIBUFFER_"
