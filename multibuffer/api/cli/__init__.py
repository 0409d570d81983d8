"""Command-line interface for multibuffer."""
