"""Vault access: note parsing, link graph and document snapshots."""

from .document import build_document_context
from .index import Vault
from .parser import extract_headings, parse_note

__all__ = ["Vault", "build_document_context", "extract_headings", "parse_note"]
