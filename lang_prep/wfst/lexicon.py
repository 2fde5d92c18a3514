"""Pronunciation lexicon (L).

This module implements:
1. Lexicon merge: bootstrap entries + base lexicon, deduplicated and sorted
2. Disambiguation symbols for prefix and homophone pronunciations
3. Phone symbol table (tokens.txt)
4. Lexicon FST (L_disambig) mapping phone sequences to words
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import pynini

from ..errors import MalformedLexiconEntry
from ..utils import atomic_open
from ..vocab import SymbolTable


logger = logging.getLogger(__name__)

Lexicon = List[Tuple[str, Tuple[str, ...]]]


def parse_lexicon(lines: Iterable[str],
                  source: Optional[str] = None,
                  on_malformed: str = 'error') -> Iterator[Tuple[str, Tuple[str, ...]]]:
    """Parse lexicon lines of the form ``word phone1 phone2 ...``.

    Blank lines are ignored.

    Args:
        lines: Lexicon lines
        source: Name of the input, used in error messages
        on_malformed: 'error' to raise on a line without phones, 'skip' to
                      log a warning and drop it

    Yields:
        (word, phones) tuples

    Raises:
        MalformedLexiconEntry: On a line with fewer than two fields when
                               ``on_malformed`` is 'error'
    """
    if on_malformed not in ('error', 'skip'):
        raise ValueError(f"Unknown malformed-entry policy: {on_malformed}")

    for lineno, line in enumerate(lines, start=1):
        parts = line.split()
        if not parts:
            continue
        if len(parts) < 2:
            if on_malformed == 'error':
                raise MalformedLexiconEntry(line.rstrip('\n'), lineno, source)
            logger.warning(f"Skipping malformed lexicon entry at "
                           f"{source or 'line'}:{lineno}: {line.rstrip()!r}")
            continue
        yield parts[0], tuple(parts[1:])


def read_lexicon(path: str, on_malformed: str = 'error') -> Lexicon:
    """Load a lexicon file.

    Args:
        path: Path to lexicon file
        on_malformed: Policy for malformed lines, see ``parse_lexicon``

    Returns:
        List of (word, phones) in file order
    """
    with open(path, 'r', encoding='utf-8') as f:
        return list(parse_lexicon(f, source=path, on_malformed=on_malformed))


def write_lexicon(path: str, lexicon: Lexicon) -> str:
    """Write a lexicon as ``word phone1 phone2 ...`` lines."""
    with atomic_open(path) as f:
        for word, phones in lexicon:
            f.write(' '.join((word,) + phones) + '\n')
    return path


def merge_lexicon(base_lines: Iterable[str],
                  bootstrap: Sequence[Sequence[str]] = (),
                  source: Optional[str] = None,
                  on_malformed: str = 'error') -> Lexicon:
    """Merge bootstrap pronunciations into a base lexicon.

    Exact duplicate entries are removed and the result is sorted by the full
    entry text. A word with several different pronunciations keeps all of
    them.

    Args:
        base_lines: Lines of the base lexicon
        bootstrap: (word, phone, ...) entries always added, e.g. ('!SIL', 'SIL')
        source: Name of the base lexicon, used in error messages
        on_malformed: Policy for malformed base lines, see ``parse_lexicon``

    Returns:
        Sorted, deduplicated list of (word, phones)
    """
    lines = set()

    for entry in bootstrap:
        word, *phones = entry
        lines.add(' '.join([word] + list(phones)))

    for word, phones in parse_lexicon(base_lines, source=source, on_malformed=on_malformed):
        lines.add(' '.join((word,) + phones))

    lexicon = []
    for line in sorted(lines):
        word, *phones = line.split(' ')
        lexicon.append((word, tuple(phones)))

    logger.info(f"Merged lexicon has {len(lexicon)} entries "
                f"for {len({word for word, _ in lexicon})} words")
    return lexicon


def add_disambig_symbols(lexicon: Lexicon) -> Tuple[Lexicon, int]:
    """Append #1, #2, ... to ambiguous pronunciations.

    A pronunciation needs a disambiguation symbol when it is a proper prefix
    of another pronunciation or when several words share it. Homophones get
    consecutive symbols in lexicon order.

    Args:
        lexicon: List of (word, phones)

    Returns:
        Tuple of (lexicon with disambiguation symbols, highest symbol index
        used, 0 if none)
    """
    counts: Dict[Tuple[str, ...], int] = defaultdict(int)
    prefixes = set()

    for _, phones in lexicon:
        counts[phones] += 1
        for end in range(1, len(phones)):
            prefixes.add(phones[:end])

    max_disambig = 0
    last_used: Dict[Tuple[str, ...], int] = defaultdict(int)
    result = []

    for word, phones in lexicon:
        if phones not in prefixes and counts[phones] == 1:
            result.append((word, phones))
            continue

        disambig = last_used[phones] + 1
        last_used[phones] = disambig
        max_disambig = max(max_disambig, disambig)
        result.append((word, phones + (f"#{disambig}",)))

    return result, max_disambig


class PhoneTable(SymbolTable):
    """Phone symbol table (tokens.txt).

    Layout: <eps> 0, phones sorted by codepoint, then #0 .. #max_disambig.
    """

    def __init__(self, entries: Iterable[Tuple[str, int]], num_phones: int, max_disambig: int):
        super().__init__(entries, num_words=num_phones)
        self.max_disambig = max_disambig

    @classmethod
    def from_lexicon(cls,
                     lexicon: Lexicon,
                     max_disambig: int = 0,
                     epsilon: str = '<eps>') -> 'PhoneTable':
        """Build the phone table of a lexicon.

        Args:
            lexicon: List of (word, phones), without disambiguation symbols
            max_disambig: Highest disambiguation index to reserve
            epsilon: Symbol for id 0

        Returns:
            The phone table
        """
        phones = sorted({phone for _, prons in lexicon for phone in prons})
        clashes = [p for p in phones if p == epsilon or p.startswith('#')]
        if clashes:
            raise ValueError(f"Phones clash with reserved symbols: {clashes}")

        entries = [(epsilon, 0)]
        entries.extend((phone, idx) for idx, phone in enumerate(phones, start=1))
        for i in range(max_disambig + 1):
            entries.append((f"#{i}", len(entries)))

        return cls(entries, num_phones=len(phones), max_disambig=max_disambig)

    @property
    def phones(self) -> List[str]:
        return self.words

    @property
    def disambig(self) -> str:
        return self.get_symbol(self.num_words + 1)

    @property
    def disambig_symbols(self) -> List[str]:
        return [symbol for symbol, _ in list(self)[self.num_words + 1:]]

    @property
    def sentence_start(self) -> str:
        raise AttributeError("A phone table has no sentence-start symbol")

    @property
    def sentence_end(self) -> str:
        raise AttributeError("A phone table has no sentence-end symbol")


def build_lexicon_fst(lexicon: Lexicon,
                      phone_table: SymbolTable,
                      word_table: SymbolTable,
                      disambig: str = '#0') -> pynini.Fst:
    """Build the lexicon FST with disambiguation symbols (L_disambig).

    Every pronunciation is a path that leaves and re-enters the loop state;
    the word is emitted on the first arc. The loop state carries a
    ``disambig:disambig`` self-loop so the grammar's disambiguation symbol
    passes through composition.

    Args:
        lexicon: (word, phones) with disambiguation symbols already added
        phone_table: Phone symbol table
        word_table: Word symbol table
        disambig: Grammar disambiguation symbol, present in both tables

    Returns:
        Lexicon FST, arc-sorted on output labels

    Raises:
        KeyError: If a phone or word is missing from its table
    """
    phone_syms = phone_table.to_pynini()
    word_syms = word_table.to_pynini()
    eps = 0

    lex_fst = pynini.Fst()
    lex_fst.set_input_symbols(phone_syms)
    lex_fst.set_output_symbols(word_syms)

    one = pynini.Weight.one(lex_fst.weight_type())

    loop_state = lex_fst.add_state()
    lex_fst.set_start(loop_state)
    lex_fst.set_final(loop_state)

    for word, phones in lexicon:
        word_id = word_table.get_id(word)
        current_state = loop_state

        for i, phone in enumerate(phones):
            phone_id = phone_table.get_id(phone)
            olabel = word_id if i == 0 else eps

            if i == len(phones) - 1:
                next_state = loop_state
            else:
                next_state = lex_fst.add_state()

            lex_fst.add_arc(current_state, pynini.Arc(phone_id, olabel, one, next_state))
            current_state = next_state

    lex_fst.add_arc(loop_state, pynini.Arc(
        phone_table.get_id(disambig),
        word_table.get_id(disambig),
        one,
        loop_state
    ))

    lex_fst.arcsort(sort_type="olabel")
    return lex_fst


def restrict_to_table(lexicon: Lexicon, word_table: SymbolTable) -> Lexicon:
    """Drop lexicon entries whose word is not in the word table."""
    kept = [(word, phones) for word, phones in lexicon if word in word_table]
    missing = len(lexicon) - len(kept)
    if missing:
        logger.warning(f"{missing} lexicon entries have words missing from the "
                       f"word symbol table and are left out of L")
    return kept
