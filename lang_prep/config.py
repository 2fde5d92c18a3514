"""Configuration for lang directory preparation.

Defaults follow the GigaSpeech recipe:
- garbage tags drop a whole utterance
- punctuation tags are deleted in place
- !SIL, <SPOKEN_NOISE> and <UNK> are always in the vocabulary
"""

import copy
import json
from typing import Any, Dict, Optional


DEFAULT_CONFIG: Dict[str, Any] = {
    'tags': {
        'garbage': ['<SIL>', '<MUSIC>', '<NOISE>', '<OTHER>'],
        'punctuation': ['<COMMA>', '<EXCLAMATIONPOINT>', '<PERIOD>', '<QUESTIONMARK>'],
    },
    'symbols': {
        'epsilon': '<eps>',
        'disambig': '#0',
        'sentence_start': '<s>',
        'sentence_end': '</s>',
        # (word, phone) pairs
        'bootstrap': [
            ['!SIL', 'SIL'],
            ['<SPOKEN_NOISE>', 'SPN'],
            ['<UNK>', 'SPN'],
        ],
    },
    'lexicon': {
        'on_malformed': 'error',  # or 'skip'
    },
    'pipeline': {
        'vocab_sizes': [500],
        'show_progress': True,
    },
}

_MALFORMED_POLICIES = ('error', 'skip')


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def validate_config(config: Dict[str, Any]) -> None:
    """Check the known keys of a configuration.

    Args:
        config: Configuration dictionary

    Raises:
        ValueError: If a known key holds a value of the wrong type
    """
    for section in DEFAULT_CONFIG:
        if not isinstance(config.get(section), dict):
            raise ValueError(f"{section} must be an object")

    for section in ('garbage', 'punctuation'):
        tags = config['tags'][section]
        if not isinstance(tags, list) or not all(isinstance(t, str) and t for t in tags):
            raise ValueError(f"tags.{section} must be a list of non-empty strings")

    symbols = config['symbols']
    for key in ('epsilon', 'disambig', 'sentence_start', 'sentence_end'):
        value = symbols[key]
        if not isinstance(value, str) or not value or len(value.split()) != 1:
            raise ValueError(f"symbols.{key} must be a single token, got {value!r}")

    if not isinstance(symbols['bootstrap'], list):
        raise ValueError("symbols.bootstrap must be a list of [word, phone, ...] entries")
    for pair in symbols['bootstrap']:
        if (not isinstance(pair, (list, tuple)) or len(pair) < 2
                or not all(isinstance(p, str) and p for p in pair)):
            raise ValueError(f"symbols.bootstrap entries must be [word, phone, ...], got {pair!r}")

    if config['lexicon']['on_malformed'] not in _MALFORMED_POLICIES:
        raise ValueError(f"lexicon.on_malformed must be one of {_MALFORMED_POLICIES}")

    vocab_sizes = config['pipeline']['vocab_sizes']
    if not isinstance(vocab_sizes, list) or not all(
            isinstance(v, int) and not isinstance(v, bool) and v > 0 for v in vocab_sizes):
        raise ValueError("pipeline.vocab_sizes must be a list of positive integers")

    if not isinstance(config['pipeline']['show_progress'], bool):
        raise ValueError("pipeline.show_progress must be true or false")


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration, overlaying a JSON file on the defaults.

    Args:
        path: Optional path to a JSON configuration file

    Returns:
        A new configuration dictionary
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if path is not None:
        with open(path, 'r', encoding='utf-8') as f:
            overrides = json.load(f)
        if not isinstance(overrides, dict):
            raise ValueError(f"Configuration in {path} must be a JSON object")
        _merge(config, overrides)

    validate_config(config)
    return config


def bootstrap_words(config: Dict[str, Any]):
    """Return the bootstrap words in configured order."""
    return [pair[0] for pair in config['symbols']['bootstrap']]
