"""Infra layer utilities (state file storage)."""

from .storage import StateStore, encode_document

__all__ = ["StateStore", "encode_document"]
