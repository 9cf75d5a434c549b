"""
Reader capability used by the tag operations, plus an in-memory tag for
--simulate mode and tests
"""

import logging

from nfc_errors import ReaderIOError

logger = logging.getLogger(__name__)


class TagReader:
    """Block level access to the tag currently on a reader"""

    name = "reader"

    def write_block(self, index: int, data: bytes) -> None:
        raise NotImplementedError

    def read_block(self, index: int, length: int = 4) -> bytes:
        raise NotImplementedError

    def release(self) -> None:
        """Drop any open card connection (called when the card is removed)"""


class MockTagReader(TagReader):
    """In-memory NTAG215: 135 pages of 4 bytes, pages 0-3 reserved"""

    PAGE_SIZE = 4

    def __init__(self, name: str = "Simulated NTAG215 Reader", pages: int = 135):
        self.name = name
        self.page_count = pages
        self.memory = bytearray(pages * self.PAGE_SIZE)

    def _check_page(self, index: int):
        if not 0 <= index < self.page_count:
            raise ReaderIOError(index, f"page out of range (tag has {self.page_count} pages)")

    def _store(self, index: int, data: bytes):
        self._check_page(index)
        offset = index * self.PAGE_SIZE
        self.memory[offset:offset + self.PAGE_SIZE] = bytes(data)

    def write_block(self, index: int, data: bytes) -> None:
        if len(data) != self.PAGE_SIZE:
            raise ReaderIOError(index, f"expected {self.PAGE_SIZE} bytes, got {len(data)}")
        if index < 4:
            raise ReaderIOError(index, "page is reserved")
        self._store(index, data)
        logger.debug("%s: wrote page %d: %s", self.name, index, bytes(data).hex())

    def read_block(self, index: int, length: int = 4) -> bytes:
        self._check_page(index)
        offset = index * self.PAGE_SIZE
        return bytes(self.memory[offset:offset + length])

    def page(self, index: int) -> bytes:
        return self.read_block(index, self.PAGE_SIZE)
