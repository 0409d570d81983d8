"""Core data models for multibuffer."""

from .document import AggregateDocument
from .excerpt import Excerpt, generate_excerpt_id
from .mapping import AggregateMapping, ValidationResult, validate_mapping
from .match_span import HostMatchShape, MatchSpan, normalize_host_match
from .options import ReplaceOptions, SearchOptions
from .ranges import LineRange
from .text_document import TextDocument

__all__ = [
    "AggregateDocument",
    "AggregateMapping",
    "Excerpt",
    "HostMatchShape",
    "LineRange",
    "MatchSpan",
    "ReplaceOptions",
    "SearchOptions",
    "TextDocument",
    "ValidationResult",
    "generate_excerpt_id",
    "normalize_host_match",
    "validate_mapping",
]
