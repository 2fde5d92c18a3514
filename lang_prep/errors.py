"""Exceptions raised while preparing a lang directory."""

from typing import Optional


class LangPrepError(Exception):
    """Base class for lang preparation failures."""


class ReservedSymbolCollision(LangPrepError, ValueError):
    """A vocabulary word equals a reserved sentence-boundary symbol.

    Attributes:
        symbol: The offending word as it appeared in the vocabulary
        slot: Which reserved slot it collided with ("sentence-start" or
              "sentence-end")
    """

    def __init__(self, symbol: str, slot: str):
        self.symbol = symbol
        self.slot = slot
        super().__init__(f"{symbol} is in the vocabulary! "
                         f"It is reserved for the {slot} symbol.")


class MalformedLexiconEntry(LangPrepError, ValueError):
    """A lexicon line does not have a word followed by at least one phone."""

    def __init__(self, line: str, lineno: int, source: Optional[str] = None):
        self.line = line
        self.lineno = lineno
        self.source = source
        where = f"{source}:{lineno}" if source else f"line {lineno}"
        super().__init__(f"Malformed lexicon entry at {where}: {line!r}")
