from text_replace.accumulator import (
    ChunkAccumulator,
    MatchEvent,
    MatchFound,
    StreamFlushed,
    iter_replace,
    replace_text,
)
from text_replace.errors import ConfigurationError
from text_replace.files import (
    FileMatches,
    iter_files,
    replace_text_in_file,
    replace_text_in_files,
    search_text_in_file,
    search_text_in_files,
)
from text_replace.filters import (
    FilterRule,
    LiteralFilter,
    MatchResult,
    PatternFilter,
    compile_filters,
    find_match,
    resolve_max_match_length,
)

__all__ = [
    "ChunkAccumulator",
    "ConfigurationError",
    "FileMatches",
    "FilterRule",
    "LiteralFilter",
    "MatchEvent",
    "MatchFound",
    "MatchResult",
    "PatternFilter",
    "StreamFlushed",
    "compile_filters",
    "find_match",
    "iter_files",
    "iter_replace",
    "replace_text",
    "replace_text_in_file",
    "replace_text_in_files",
    "resolve_max_match_length",
    "search_text_in_file",
    "search_text_in_files",
]
