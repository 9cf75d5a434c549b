"""
Write and read a JSON payload against the registry's current reader
"""

import logging

from nfc_errors import NoCardPresent, NoReaderAvailable, ReadFailed, ReaderIOError, WriteFailed
from session_registry import Session, SessionRegistry
from tag_codec import decode_payload, encode_payload

logger = logging.getLogger(__name__)


def _require_session(registry: SessionRegistry) -> Session:
    session = registry.current_session()
    if session is None or not session.is_active:
        raise NoReaderAvailable()
    return session


def write_payload(registry: SessionRegistry, payload: dict) -> int:
    """
    Write payload to the tag page by page, starting at page 4.

    Nothing is written if the payload is too large. A failure part way leaves
    the earlier pages written. Returns the number of pages written.
    """
    session = _require_session(registry)
    blocks = encode_payload(payload)
    logger.debug(f"Data to write to NFC tag: {payload}")

    for block in blocks:
        if not registry.is_current(session):
            raise WriteFailed(block.index, ReaderIOError(block.index, "reader detached"))
        try:
            session.reader.write_block(block.index, block.data)
        except ReaderIOError as e:
            logger.error(f"Error writing to NFC tag: {e}")
            raise WriteFailed(block.index, e) from e
        logger.debug(f"Writing block {block.index}: {block.data!r}")

    logger.info(f"Data successfully written to NFC tag ({len(blocks)} blocks)")
    return len(blocks)


def read_payload(registry: SessionRegistry, strict: bool = False) -> dict:
    """Read the JSON payload stored on the tag currently on the reader"""
    session = _require_session(registry)
    if not session.has_card:
        raise NoCardPresent()

    def read_block(index: int, length: int) -> bytes:
        if not registry.is_current(session):
            raise ReadFailed(index, ReaderIOError(index, "reader detached"))
        return session.reader.read_block(index, length)

    data = decode_payload(read_block, strict=strict)
    logger.info(f"Successfully read and parsed data: {data}")
    return data
