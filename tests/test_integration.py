"""Integration tests for the staged lang preparation."""

import gzip
import json
import os
import tempfile

import pynini
import pytest

from lang_prep.config import load_config
from lang_prep.errors import ReservedSymbolCollision
from lang_prep.prepare import LangPreparer, main
from lang_prep.vocab import SymbolTable


TRANSCRIPT = [
    "the cat sat<PERIOD>\n",
    "<NOISE> background hum\n",
    "the dog\tran<COMMA>\n",
]

LEXICON = [
    "the DH AH\n",
    "the DH IY\n",
    "cat K AE T\n",
    "dog D AO G\n",
    "ran R AE N\n",
    "sat S AE T\n",
    "hum HH AH M\n",
]


def write_lines(path, lines):
    with open(path, 'w', encoding='utf-8') as f:
        f.writelines(lines)


def read_text(path):
    with open(path, encoding='utf-8') as f:
        return f.read()


class TestLangPreparer:
    """Integration tests for LangPreparer."""

    def setup_method(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = self.tmpdir.name
        self.lang_dir = os.path.join(self.root, "data", "lang_phone")
        self.transcript = os.path.join(self.root, "transcript.txt")
        self.lexicon = os.path.join(self.root, "lexicon.txt")
        write_lines(self.transcript, TRANSCRIPT)
        write_lines(self.lexicon, LEXICON)

        self.config = load_config()
        self.config['pipeline']['show_progress'] = False

    def teardown_method(self):
        self.tmpdir.cleanup()

    def test_all_stages(self):
        """Test stages 9 through 11 end to end."""
        preparer = LangPreparer(self.lang_dir, self.config)
        preparer.run(stage=9, stop_stage=11, transcript=self.transcript, lexicon=self.lexicon)

        assert read_text(os.path.join(self.lang_dir, "transcript_words.txt")) == \
            "the cat sat\nthe dog ran\n"

        words = SymbolTable.read(os.path.join(self.lang_dir, "words.txt"))
        assert words.words == ["!SIL", "<SPOKEN_NOISE>", "<UNK>", "cat", "dog", "ran", "sat", "the"]
        assert words.get_id("</s>") == 11

        lexicon_lines = read_text(os.path.join(self.lang_dir, "lexicon.txt")).splitlines()
        assert lexicon_lines[:3] == ["!SIL SIL", "<SPOKEN_NOISE> SPN", "<UNK> SPN"]
        assert lexicon_lines == sorted(lexicon_lines)
        assert "the DH AH" in lexicon_lines and "the DH IY" in lexicon_lines

        # SPN is shared by <SPOKEN_NOISE> and <UNK>
        disambig_lines = read_text(os.path.join(self.lang_dir, "lexicon_disambig.txt")).splitlines()
        assert "<SPOKEN_NOISE> SPN #1" in disambig_lines
        assert "<UNK> SPN #2" in disambig_lines

        tokens = read_text(os.path.join(self.lang_dir, "tokens.txt")).splitlines()
        assert tokens[0] == "<eps> 0"
        assert tokens[-3:] == ["#0 17", "#1 18", "#2 19"]

        lex_fst = pynini.Fst.read(os.path.join(self.lang_dir, "L_disambig.fst"))
        assert lex_fst.num_states() > 1
        assert not [name for name in os.listdir(self.lang_dir) if name.endswith(".tmp")]

        bpe_dir = os.path.join(self.root, "data", "lang_bpe_500")
        assert read_text(os.path.join(bpe_dir, "words.txt")) == words.to_text()
        assert os.path.exists(os.path.join(bpe_dir, "transcript_words.txt"))

    def test_rerun_keeps_transcript(self):
        """Test that an existing transcript_words.txt is not rebuilt."""
        preparer = LangPreparer(self.lang_dir, self.config)
        preparer.run(stage=9, stop_stage=9, transcript=self.transcript)

        transcript_words = os.path.join(self.lang_dir, "transcript_words.txt")
        before = read_text(transcript_words)
        words_before = read_text(os.path.join(self.lang_dir, "words.txt"))

        write_lines(self.transcript, ["completely different words\n"])
        preparer.run(stage=9, stop_stage=9, transcript=self.transcript)

        assert read_text(transcript_words) == before
        assert read_text(os.path.join(self.lang_dir, "words.txt")) == words_before

    def test_collision_writes_nothing(self):
        """Test that a reserved symbol aborts before words.txt is written."""
        write_lines(self.transcript, ["hello <s> world\n"])
        preparer = LangPreparer(self.lang_dir, self.config)

        with pytest.raises(ReservedSymbolCollision):
            preparer.prepare_words(transcript=self.transcript)

        assert not os.path.exists(os.path.join(self.lang_dir, "words.txt"))
        assert sorted(os.listdir(self.lang_dir)) == ["transcript_words.txt"]

    def test_supervision_manifest(self):
        """Test stage 9 reading a lhotse supervision manifest."""
        manifest = os.path.join(self.root, "gigaspeech_supervisions_XS.jsonl.gz")
        with gzip.open(manifest, 'wt', encoding='utf-8') as f:
            for text in ["HELLO<COMMA> WORLD", "<MUSIC>", "GOOD MORNING"]:
                f.write(json.dumps({"text": text}) + "\n")

        table = LangPreparer(self.lang_dir, self.config).prepare_words(supervisions=manifest)

        assert table.words == ["!SIL", "<SPOKEN_NOISE>", "<UNK>", "GOOD", "HELLO", "MORNING", "WORLD"]

    def test_failed_transcript_leaves_nothing(self):
        """Test that a manifest error leaves no partial transcript_words.txt."""
        manifest = os.path.join(self.root, "supervisions.jsonl")
        write_lines(manifest, ['{"text": "alpha"}\n', "{not json\n", '{"text": "omega"}\n'])
        preparer = LangPreparer(self.lang_dir, self.config)

        with pytest.raises(ValueError):
            preparer.prepare_words(supervisions=manifest)

        assert os.listdir(self.lang_dir) == []

        # A rerun starts from scratch instead of skipping
        write_lines(self.transcript, ["alpha\n", "omega\n"])
        table = preparer.prepare_words(transcript=self.transcript)

        assert table.words == ["!SIL", "<SPOKEN_NOISE>", "<UNK>", "alpha", "omega"]

    def test_missing_inputs(self):
        """Test errors for missing stage inputs."""
        preparer = LangPreparer(self.lang_dir, self.config)

        with pytest.raises(FileNotFoundError):
            preparer.prepare_words()

        with pytest.raises(FileNotFoundError):
            preparer.prepare_lexicon(self.lexicon)


class TestCommandLine:
    """Integration tests for the command line entry point."""

    def test_success(self):
        """Test a full run through main()."""
        with tempfile.TemporaryDirectory() as tmpdir:
            transcript = os.path.join(tmpdir, "transcript.txt")
            lexicon = os.path.join(tmpdir, "lexicon.txt")
            lang_dir = os.path.join(tmpdir, "lang_phone")
            write_lines(transcript, TRANSCRIPT)
            write_lines(lexicon, LEXICON)

            code = main(["--lang-dir", lang_dir,
                         "--stage", "9", "--stop-stage", "10",
                         "--transcript", transcript,
                         "--lexicon", lexicon,
                         "--no-progress"])

            assert code == 0
            assert os.path.exists(os.path.join(lang_dir, "L_disambig.fst"))
            assert not os.path.exists(os.path.join(tmpdir, "lang_bpe_500"))

    def test_collision_exit_code(self):
        """Test that a reserved symbol collision exits with status 1."""
        with tempfile.TemporaryDirectory() as tmpdir:
            transcript = os.path.join(tmpdir, "transcript.txt")
            write_lines(transcript, ["a </s> b\n"])

            code = main(["--lang-dir", os.path.join(tmpdir, "lang_phone"),
                         "--stop-stage", "9",
                         "--transcript", transcript,
                         "--no-progress"])

            assert code == 1

    def test_bad_config_exit_code(self):
        """Test that an invalid configuration exits with status 1."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config = os.path.join(tmpdir, "config.json")
            write_lines(config, ['{"tags": ["x"]}\n'])

            code = main(["--lang-dir", os.path.join(tmpdir, "lang_phone"),
                         "--config", config,
                         "--no-progress"])

            assert code == 1
