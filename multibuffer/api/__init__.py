"""Public interfaces for multibuffer."""
