"""Service layer for multibuffer."""
