"""Unit tests for the corpus reader."""

from __future__ import annotations

import pytest

from mail_emulator.corpus import CorpusReader, list_owners
from mail_emulator.exceptions import ConfigurationError


@pytest.fixture
def corpus(tmp_path, write_message):
    root = tmp_path / "maildir"
    inbox = root / "allen-p" / "inbox"
    for name in ("10.", "2.", "1."):
        write_message(inbox / name, f"From: a@enron.com\nSubject: {name}\n\nbody\n")
    write_message(root / "allen-p" / "sent_items" / "1.", "From: phillip.allen@enron.com\n\nsent\n")
    write_message(root / "allen-p" / "notes.", "From: phillip.allen@enron.com\n\nloose\n")
    # Non-message files that live next to real ones.
    write_message(inbox / "index.html", "<html></html>")
    write_message(inbox / "folders.json", "{}")
    write_message(inbox / ".DS_Store", b"\x00\x01")
    (root / "lay-k").mkdir()
    (root / "arnold-j").mkdir()
    return root


class TestCorpusReader:
    """Test suite for CorpusReader."""

    def test_yields_message_files_in_natural_order(self, corpus) -> None:
        records = list(CorpusReader(corpus, "allen-p"))

        inbox = [r.source_path.name for r in records if r.folder == "inbox"]
        assert inbox == ["1.", "2.", "10."]
        assert [r.ordinal for r in records] == list(range(len(records)))

    def test_skips_index_and_hidden_files(self, corpus) -> None:
        names = {r.source_path.name for r in CorpusReader(corpus, "allen-p")}

        assert "index.html" not in names
        assert "folders.json" not in names
        assert ".DS_Store" not in names

    def test_records_carry_owner_and_folder(self, corpus) -> None:
        records = list(CorpusReader(corpus, "allen-p"))

        assert {r.folder_owner for r in records} == {"allen-p"}
        assert {r.folder for r in records} == {"inbox", "sent_items", ""}
        loose = next(r for r in records if r.source_path.name == "notes.")
        assert loose.folder == ""
        assert loose.raw_bytes.startswith(b"From: phillip.allen@enron.com")

    def test_reader_is_restartable(self, corpus) -> None:
        reader = CorpusReader(corpus, "allen-p")

        first = [r.source_path for r in reader]
        second = [r.source_path for r in reader]

        assert first == second
        assert len(first) == 5

    def test_missing_root_is_fatal(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError):
            CorpusReader(tmp_path / "nope", "allen-p")

    def test_missing_owner_is_fatal(self, corpus) -> None:
        with pytest.raises(ConfigurationError, match="allen-p"):
            CorpusReader(corpus, "skilling-j")

    def test_owner_cannot_escape_root(self, corpus) -> None:
        with pytest.raises(ConfigurationError):
            CorpusReader(corpus, "../maildir")


def test_list_owners(corpus) -> None:
    assert list_owners(corpus) == ["allen-p", "arnold-j", "lay-k"]


def test_list_owners_missing_root(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        list_owners(tmp_path / "nope")
