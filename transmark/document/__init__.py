"""Document model, reference parser, and document I/O."""

from transmark.document.models import FRONTMATTER_MARKER_KEY, Document, Frontmatter, Unit
from transmark.document.parser import DocumentParser, MarkdownParser
from transmark.document.store import DocumentStore, FileSystemDocumentStore

__all__ = [
    "FRONTMATTER_MARKER_KEY",
    "Document",
    "DocumentParser",
    "DocumentStore",
    "FileSystemDocumentStore",
    "Frontmatter",
    "MarkdownParser",
    "Unit",
]
