"""Aggregate document model and identity helpers."""

import itertools
import time
from dataclasses import dataclass

from multibuffer.core.constants import FORMAT_VERSION, URI_SCHEME, URI_SUFFIX

from .mapping import AggregateMapping
from .options import ReplaceOptions, SearchOptions

_uri_counter = itertools.count(1)


def make_document_uri(kind: str) -> str:
    """Build a synthetic identity such as ``multibuffer:search-<ts>.multibuffer``."""
    stamp = f"{int(time.time() * 1000)}-{next(_uri_counter)}"
    return f"{URI_SCHEME}:{kind}-{stamp}{URI_SUFFIX}"


@dataclass
class AggregateDocument:
    """One rendered search or replace result.

    The live text is owned by whoever displays the document; ``content`` is the
    text as rendered, served to the host on request.
    """

    content: str
    mapping: AggregateMapping
    search_options: SearchOptions
    uri: str
    replace_options: ReplaceOptions | None = None
    format_version: int = FORMAT_VERSION

    @property
    def is_replace(self) -> bool:
        return self.replace_options is not None
