"""Reading and parsing of raw foldered mail corpora.

A corpus is a directory with one sub-directory per mailbox owner; each owner
directory holds arbitrarily nested folders of single-message files (the
Enron maildir layout).
"""

from .parsing import backfill_timestamps, parse_raw_record
from .reader import CorpusReader, list_owners

__all__ = ["CorpusReader", "backfill_timestamps", "list_owners", "parse_raw_record"]
