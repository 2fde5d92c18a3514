"""GigaSpeech lang directory preparation.

Builds the word symbol table, merged lexicon and lexicon FST that the
decoding graph compilers consume.
"""

__version__ = "0.1.0"

from .config import load_config, DEFAULT_CONFIG
from .errors import LangPrepError, ReservedSymbolCollision, MalformedLexiconEntry
from .normalize import TranscriptNormalizer, read_supervision_texts
from .vocab import SymbolTable, extract_vocabulary, compile_symbol_table

__all__ = [
    "load_config",
    "DEFAULT_CONFIG",
    "LangPrepError",
    "ReservedSymbolCollision",
    "MalformedLexiconEntry",
    "TranscriptNormalizer",
    "read_supervision_texts",
    "SymbolTable",
    "extract_vocabulary",
    "compile_symbol_table",
]
