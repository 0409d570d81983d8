"""Workspace provider implementations."""

from .filesystem_provider import FilesystemWorkspace

__all__ = ["FilesystemWorkspace"]
