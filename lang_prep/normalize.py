"""Transcript normalization.

This module turns raw GigaSpeech transcripts into the corpus the vocabulary
is extracted from:
1. Utterances containing a garbage tag (<SIL>, <MUSIC>, ...) are dropped
2. Punctuation tags (<COMMA>, <PERIOD>, ...) are deleted in place
3. Tabs and runs of spaces collapse to a single space
"""

import gzip
import json
import logging
import re
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence, Tuple

from tqdm import tqdm

from .utils import atomic_open


logger = logging.getLogger(__name__)

_SPACE_RUN = re.compile(r' +')


class TranscriptNormalizer:
    """Tag filter for transcript lines.

    Attributes:
        garbage_tags: Substrings that cause a whole utterance to be dropped
        punctuation_tags: Substrings deleted from kept utterances
    """

    def __init__(self,
                 garbage_tags: Sequence[str] = (),
                 punctuation_tags: Sequence[str] = ()):
        """Initialize the normalizer.

        Args:
            garbage_tags: Garbage meta tags, matched as exact substrings
            punctuation_tags: Punctuation tags, removed in the given order
        """
        self.garbage_tags = tuple(garbage_tags)
        self.punctuation_tags = tuple(punctuation_tags)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'TranscriptNormalizer':
        return cls(config['tags']['garbage'], config['tags']['punctuation'])

    def is_garbage(self, line: str) -> bool:
        return any(tag in line for tag in self.garbage_tags)

    def strip_punctuation(self, line: str) -> str:
        for tag in self.punctuation_tags:
            line = line.replace(tag, '')
        return line

    @staticmethod
    def collapse_whitespace(line: str) -> str:
        """Replace tabs with spaces and squeeze space runs.

        Leading and trailing spaces are squeezed but not trimmed.
        """
        return _SPACE_RUN.sub(' ', line.replace('\t', ' '))

    def normalize_line(self, line: str) -> Optional[str]:
        """Normalize one utterance.

        Args:
            line: Raw utterance text without the trailing newline

        Returns:
            The cleaned utterance, or None if it carries a garbage tag
        """
        if self.is_garbage(line):
            return None
        return self.collapse_whitespace(self.strip_punctuation(line))

    def normalize(self, lines: Iterable[str]) -> Iterator[str]:
        """Normalize a stream of utterances, preserving order.

        Garbage utterances are dropped; utterances that become empty are kept.
        """
        for line in lines:
            cleaned = self.normalize_line(line.rstrip('\n'))
            if cleaned is not None:
                yield cleaned

    def normalize_file(self,
                       src_path: str,
                       dst_path: str,
                       show_progress: bool = False) -> Tuple[int, int]:
        """Normalize a transcript file into another file.

        Args:
            src_path: Raw transcript, one utterance per line
            dst_path: Output path for the cleaned transcript
            show_progress: Whether to show a progress bar

        Returns:
            Tuple of (kept, dropped) utterance counts
        """
        with open(src_path, 'r', encoding='utf-8') as f:
            return self.write_normalized(f, dst_path, show_progress=show_progress)

    def write_normalized(self,
                         lines: Iterable[str],
                         dst_path: str,
                         show_progress: bool = False) -> Tuple[int, int]:
        """Normalize a stream of utterances and write them to a file.

        Returns:
            Tuple of (kept, dropped) utterance counts
        """
        kept = 0
        dropped = 0

        with atomic_open(dst_path) as out:
            for line in tqdm(lines, desc="Normalizing transcript", disable=not show_progress):
                cleaned = self.normalize_line(line.rstrip('\n'))
                if cleaned is None:
                    dropped += 1
                    continue
                out.write(cleaned + '\n')
                kept += 1

        logger.info(f"Wrote {kept} utterances to {dst_path} ({dropped} dropped by garbage tags)")
        return kept, dropped


def read_supervision_texts(path: str) -> Iterator[str]:
    """Read utterance texts from a lhotse supervision manifest.

    Supports plain and gzipped JSON-lines files. Double quotes are removed
    from the text, and records without a text field yield an empty string.

    Args:
        path: Path to a ``*.jsonl`` or ``*.jsonl.gz`` supervision manifest

    Yields:
        Utterance text, one per supervision
    """
    opener = gzip.open if path.endswith('.gz') else open

    with opener(path, 'rt', encoding='utf-8') as f:
        for line in f:
            if not line.strip():
                continue
            record = json.loads(line)
            text = record.get('text') or ''
            # one utterance per output line
            yield text.replace('"', '').replace('\n', ' ')
