import os
import sys

import pytest

# Ensure the repo root is importable for the top-level modules
ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from nfc_errors import ReaderIOError  # noqa: E402
from session_registry import SessionRegistry  # noqa: E402
from tag_reader import MockTagReader  # noqa: E402


class RecordingTagReader(MockTagReader):
    """In-memory tag that records page traffic and can fail chosen pages"""

    def __init__(self, *args, fail_reads=(), fail_writes=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_reads = set(fail_reads)
        self.fail_writes = set(fail_writes)
        self.reads = []
        self.writes = []
        self.released = 0

    def write_block(self, index, data):
        self.writes.append(index)
        if index in self.fail_writes:
            raise ReaderIOError(index, "write NACK")
        super().write_block(index, data)

    def read_block(self, index, length=4):
        self.reads.append(index)
        if index in self.fail_reads:
            raise ReaderIOError(index, "read error")
        return super().read_block(index, length)

    def release(self):
        self.released += 1


@pytest.fixture
def tag():
    return RecordingTagReader(name="ACS ACR1252 Dual Reader PICC 00 00")


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def attached(registry, tag):
    """Registry with a reader attached and a card present"""
    registry.on_attach(tag.name, tag)
    registry.on_card_present({"atr": "3B 8F 80 01"})
    return registry
