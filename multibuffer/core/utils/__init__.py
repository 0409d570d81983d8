"""Utility helpers for multibuffer."""

from .path_utils import display_path

__all__ = ["display_path"]
