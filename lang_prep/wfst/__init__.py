"""WFST-facing artifacts of a phone lang directory.

This package implements the lexicon side of decoding graph preparation:
- L: Lexicon model (pronunciation dictionary) with disambiguation symbols
- tokens.txt: Phone symbol table
"""

from .lexicon import (
    PhoneTable,
    add_disambig_symbols,
    build_lexicon_fst,
    merge_lexicon,
    read_lexicon,
    write_lexicon,
)

__all__ = [
    "PhoneTable",
    "add_disambig_symbols",
    "build_lexicon_fst",
    "merge_lexicon",
    "read_lexicon",
    "write_lexicon",
]
