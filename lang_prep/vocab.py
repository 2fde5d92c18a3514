"""Word vocabulary and symbol table.

The word symbol table (words.txt) is laid out as:
- <eps> at id 0
- every vocabulary word at ids 1..N, sorted by codepoint
- #0, <s>, </s> at ids N+1, N+2, N+3

Downstream lexicon and grammar compilers depend on this layout, so it must
be reproducible byte for byte from the same transcript.
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

import pynini

from .config import bootstrap_words
from .errors import ReservedSymbolCollision
from .normalize import TranscriptNormalizer
from .utils import atomic_open


logger = logging.getLogger(__name__)


def extract_vocabulary(lines: Iterable[str],
                       bootstrap: Iterable[str] = ()) -> FrozenSet[str]:
    """Collect the distinct words of a transcript.

    Args:
        lines: Normalized utterances
        bootstrap: Words that are always part of the vocabulary

    Returns:
        Set of distinct non-empty words
    """
    words = set(bootstrap)
    for line in lines:
        words.update(line.split())
    return frozenset(words)


class SymbolTable:
    """Immutable word symbol table.

    Build it with ``SymbolTable.build`` or ``SymbolTable.read``; rows keep the
    order they are written in.
    """

    def __init__(self, entries: Iterable[Tuple[str, int]], num_words: int):
        """Wrap already-ordered rows.

        Args:
            entries: (symbol, id) pairs with ids 0..len-1 in order
            num_words: Number of regular vocabulary words (ids 1..num_words)
        """
        self._entries = tuple(entries)
        self._num_words = num_words
        self._ids = {symbol: idx for symbol, idx in self._entries}

        if len(self._ids) != len(self._entries):
            raise ValueError("Symbol table contains duplicate symbols")

    @classmethod
    def build(cls,
              vocabulary: Iterable[str],
              epsilon: str = '<eps>',
              disambig: str = '#0',
              sentence_start: str = '<s>',
              sentence_end: str = '</s>') -> 'SymbolTable':
        """Assign ids to a vocabulary.

        Args:
            vocabulary: Distinct words, including the bootstrap words
            epsilon: Symbol for id 0
            disambig: Disambiguation symbol, first id after the words
            sentence_start: Sentence-start symbol
            sentence_end: Sentence-end symbol

        Returns:
            The symbol table

        Raises:
            ReservedSymbolCollision: If a sentence-boundary symbol is a word
        """
        words = sorted(set(vocabulary))

        reserved = {sentence_start: 'sentence-start', sentence_end: 'sentence-end'}
        for word in words:
            if word in reserved:
                raise ReservedSymbolCollision(word, reserved[word])

        entries = [(epsilon, 0)]
        entries.extend((word, idx) for idx, word in enumerate(words, start=1))

        n = len(words)
        entries.append((disambig, n + 1))
        entries.append((sentence_start, n + 2))
        entries.append((sentence_end, n + 3))

        return cls(entries, num_words=n)

    @classmethod
    def from_config(cls, vocabulary: Iterable[str], config: Dict[str, Any]) -> 'SymbolTable':
        symbols = config['symbols']
        return cls.build(vocabulary,
                         epsilon=symbols['epsilon'],
                         disambig=symbols['disambig'],
                         sentence_start=symbols['sentence_start'],
                         sentence_end=symbols['sentence_end'])

    @classmethod
    def read(cls, path: str) -> 'SymbolTable':
        """Read a symbol table written by ``write``.

        The three trailing rows are taken to be the reserved symbols.
        """
        entries = []
        with open(path, 'r', encoding='utf-8') as f:
            for lineno, line in enumerate(f, start=1):
                parts = line.split()
                if not parts:
                    continue
                if len(parts) != 2 or not parts[1].isdigit():
                    raise ValueError(f"{path}:{lineno}: expected '<symbol> <id>', got {line!r}")
                symbol, idx = parts[0], int(parts[1])
                if idx != len(entries):
                    raise ValueError(f"{path}:{lineno}: expected id {len(entries)}, got {idx}")
                entries.append((symbol, idx))

        if len(entries) < 4:
            raise ValueError(f"{path}: too few rows for a word symbol table")

        return cls(entries, num_words=len(entries) - 4)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(self._entries)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._ids

    def __eq__(self, other) -> bool:
        if not isinstance(other, SymbolTable):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"SymbolTable(num_words={self._num_words}, size={len(self)})"

    @property
    def num_words(self) -> int:
        return self._num_words

    @property
    def words(self) -> List[str]:
        """Regular vocabulary words, in id order."""
        return [symbol for symbol, _ in self._entries[1:self._num_words + 1]]

    @property
    def epsilon(self) -> str:
        return self._entries[0][0]

    @property
    def disambig(self) -> str:
        return self._entries[-3][0]

    @property
    def sentence_start(self) -> str:
        return self._entries[-2][0]

    @property
    def sentence_end(self) -> str:
        return self._entries[-1][0]

    def get_id(self, symbol: str) -> int:
        """Get the id of a symbol.

        Raises:
            KeyError: If the symbol is not in the table
        """
        return self._ids[symbol]

    def get_symbol(self, idx: int) -> str:
        if not 0 <= idx < len(self._entries):
            raise KeyError(idx)
        return self._entries[idx][0]

    def to_text(self) -> str:
        return ''.join(f"{symbol} {idx}\n" for symbol, idx in self._entries)

    def write(self, path: str) -> str:
        """Write the table as ``<symbol> <id>`` lines.

        The file is written next to ``path`` first and then renamed, so a
        reader never sees a partial table.

        Returns:
            The path written
        """
        with atomic_open(path) as f:
            f.write(self.to_text())
        return path

    def to_pynini(self) -> pynini.SymbolTable:
        """Convert to a pynini symbol table with the same keys."""
        table = pynini.SymbolTable()
        for symbol, idx in self._entries:
            table.add_symbol(symbol, idx)
        return table


def compile_symbol_table(lines: Iterable[str],
                         config: Dict[str, Any],
                         normalizer: Optional[TranscriptNormalizer] = None) -> SymbolTable:
    """Compile a word symbol table from raw transcript lines.

    Args:
        lines: Raw utterances
        config: Configuration dictionary
        normalizer: Tag filter to apply; built from ``config`` if omitted

    Returns:
        The word symbol table
    """
    if normalizer is None:
        normalizer = TranscriptNormalizer.from_config(config)

    vocabulary = extract_vocabulary(normalizer.normalize(lines), bootstrap_words(config))
    table = SymbolTable.from_config(vocabulary, config)

    logger.info(f"Compiled word symbol table with {table.num_words} words")
    return table
