"""multibuffer - workspace search rendered as one editable aggregate document."""

__version__ = "0.3.0"
