"""Staged preparation of the phone lang directory.

Implements stages 9-11 of the GigaSpeech recipe:
- Stage 9: transcript_words.txt and words.txt
- Stage 10: lexicon.txt, lexicon_disambig.txt, tokens.txt, L_disambig.fst
- Stage 11: share words.txt and transcript_words.txt with BPE lang dirs

Outputs that are expensive to rebuild are skipped when they already exist.
"""

import argparse
import logging
import os
import shutil
import sys
from typing import Any, Dict, List, Optional

from .config import bootstrap_words, load_config
from .errors import LangPrepError
from .normalize import TranscriptNormalizer, read_supervision_texts
from .vocab import SymbolTable, extract_vocabulary
from .wfst.lexicon import (
    PhoneTable,
    add_disambig_symbols,
    build_lexicon_fst,
    merge_lexicon,
    restrict_to_table,
    write_lexicon,
)


logger = logging.getLogger(__name__)

FIRST_STAGE = 9
LAST_STAGE = 11


class LangPreparer:
    """Prepare a phone lang directory."""

    def __init__(self, lang_dir: str, config: Optional[Dict[str, Any]] = None):
        """Initialize the preparer.

        Args:
            lang_dir: Output directory, e.g. data/lang_phone
            config: Configuration dictionary; defaults if omitted
        """
        self.lang_dir = lang_dir
        self.config = config if config is not None else load_config()
        self.normalizer = TranscriptNormalizer.from_config(self.config)
        self.show_progress = self.config['pipeline']['show_progress']

    def path(self, name: str) -> str:
        return os.path.join(self.lang_dir, name)

    def prepare_words(self,
                      supervisions: Optional[str] = None,
                      transcript: Optional[str] = None) -> SymbolTable:
        """Stage 9: prepare transcript_words.txt and words.txt.

        transcript_words.txt is only built when missing. words.txt is always
        rebuilt from it.

        Args:
            supervisions: lhotse supervision manifest to read texts from
            transcript: Plain transcript file, one utterance per line

        Returns:
            The word symbol table
        """
        os.makedirs(self.lang_dir, exist_ok=True)
        transcript_words = self.path('transcript_words.txt')

        if os.path.exists(transcript_words):
            logger.info(f"{transcript_words} exists, skipping transcript normalization")
        elif supervisions is not None:
            self.normalizer.write_normalized(read_supervision_texts(supervisions),
                                             transcript_words,
                                             show_progress=self.show_progress)
        elif transcript is not None:
            self.normalizer.normalize_file(transcript, transcript_words,
                                           show_progress=self.show_progress)
        else:
            raise FileNotFoundError(
                f"{transcript_words} does not exist and no supervisions or transcript was given")

        with open(transcript_words, 'r', encoding='utf-8') as f:
            vocabulary = extract_vocabulary(f, bootstrap_words(self.config))

        table = SymbolTable.from_config(vocabulary, self.config)
        table.write(self.path('words.txt'))
        logger.info(f"Wrote {len(table)} symbols to {self.path('words.txt')}")
        return table

    def prepare_lexicon(self, base_lexicon: str) -> None:
        """Stage 10: prepare lexicon.txt and the lexicon FST.

        Args:
            base_lexicon: Path to the downloaded lexicon, e.g. lm/lexicon.txt
        """
        os.makedirs(self.lang_dir, exist_ok=True)

        with open(base_lexicon, 'r', encoding='utf-8') as f:
            lexicon = merge_lexicon(f,
                                    bootstrap=self.config['symbols']['bootstrap'],
                                    source=base_lexicon,
                                    on_malformed=self.config['lexicon']['on_malformed'])
        write_lexicon(self.path('lexicon.txt'), lexicon)

        l_disambig = self.path('L_disambig.fst')
        if os.path.exists(l_disambig):
            logger.info(f"{l_disambig} exists, skipping lexicon FST")
            return

        words_txt = self.path('words.txt')
        if not os.path.exists(words_txt):
            raise FileNotFoundError(f"{words_txt} not found; run stage 9 first")
        word_table = SymbolTable.read(words_txt)

        lexicon_disambig, max_disambig = add_disambig_symbols(lexicon)
        write_lexicon(self.path('lexicon_disambig.txt'), lexicon_disambig)

        phone_table = PhoneTable.from_lexicon(lexicon, max_disambig,
                                              epsilon=self.config['symbols']['epsilon'])
        phone_table.write(self.path('tokens.txt'))

        lex_fst = build_lexicon_fst(restrict_to_table(lexicon_disambig, word_table),
                                    phone_table,
                                    word_table,
                                    disambig=self.config['symbols']['disambig'])
        tmp_path = l_disambig + '.tmp'
        lex_fst.write(tmp_path)
        os.replace(tmp_path, l_disambig)
        logger.info(f"Lexicon FST saved to: {l_disambig} "
                    f"({len(phone_table.phones)} phones, max disambig #{max_disambig})")

    def share_with_bpe(self, vocab_sizes: Optional[List[int]] = None) -> List[str]:
        """Stage 11: copy words.txt and transcript_words.txt to BPE lang dirs.

        BPE lang dirs are siblings named lang_bpe_<size>, so that phone and
        BPE systems share the same grammar.

        Returns:
            The BPE lang dirs written to
        """
        if vocab_sizes is None:
            vocab_sizes = self.config['pipeline']['vocab_sizes']

        parent = os.path.dirname(os.path.abspath(self.lang_dir))
        bpe_dirs = []

        for vocab_size in vocab_sizes:
            bpe_dir = os.path.join(parent, f"lang_bpe_{vocab_size}")
            os.makedirs(bpe_dir, exist_ok=True)
            for name in ('words.txt', 'transcript_words.txt'):
                shutil.copyfile(self.path(name), os.path.join(bpe_dir, name))
            bpe_dirs.append(bpe_dir)
            logger.info(f"Shared words.txt and transcript_words.txt with {bpe_dir}")

        return bpe_dirs

    def run(self,
            stage: int = FIRST_STAGE,
            stop_stage: int = LAST_STAGE,
            supervisions: Optional[str] = None,
            transcript: Optional[str] = None,
            lexicon: Optional[str] = None) -> None:
        """Run stages ``stage`` through ``stop_stage`` in order."""
        if stage <= 9 <= stop_stage:
            logger.info("Stage 9: Prepare transcript_words.txt and words.txt")
            self.prepare_words(supervisions=supervisions, transcript=transcript)

        if stage <= 10 <= stop_stage:
            logger.info("Stage 10: Prepare phone based lang")
            if lexicon is None:
                raise FileNotFoundError("Stage 10 needs a base lexicon (--lexicon)")
            self.prepare_lexicon(lexicon)

        if stage <= 11 <= stop_stage:
            logger.info("Stage 11: Share words with BPE based lang")
            self.share_with_bpe()


def setup_logging(level: str = 'INFO') -> None:
    """Setup logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Prepare words.txt, lexicon.txt and L_disambig.fst for a phone lang dir"
    )
    parser.add_argument("--lang-dir", default="data/lang_phone", help="Output lang directory")
    parser.add_argument("--stage", type=int, default=FIRST_STAGE, help="First stage to run")
    parser.add_argument("--stop-stage", type=int, default=LAST_STAGE, help="Last stage to run")
    parser.add_argument("--supervisions", help="lhotse supervision manifest (*.jsonl.gz)")
    parser.add_argument("--transcript", help="Plain transcript, one utterance per line")
    parser.add_argument("--lexicon", help="Base lexicon, e.g. download/lm/lexicon.txt")
    parser.add_argument("--config", help="JSON file overriding the default configuration")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bars")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = get_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = load_config(args.config)
        if args.no_progress:
            config['pipeline']['show_progress'] = False

        logger.info(f"lang_dir: {args.lang_dir}")
        preparer = LangPreparer(args.lang_dir, config)
        preparer.run(stage=args.stage,
                     stop_stage=args.stop_stage,
                     supervisions=args.supervisions,
                     transcript=args.transcript,
                     lexicon=args.lexicon)
    except (LangPrepError, FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
