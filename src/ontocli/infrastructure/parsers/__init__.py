"""Document parsers."""

from .turtle_parser import ParsedDocument, TurtleParser

__all__ = ["ParsedDocument", "TurtleParser"]
