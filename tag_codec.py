"""
JSON <-> tag block codec for NTAG21x / Ultralight style tags
Payloads are stored as raw compact JSON starting at page 4, zero padded to
the 4-byte page boundary. There is no length header: reading stops at the
first page that is not completely filled.
"""

import json
import logging
from typing import Callable, Iterable, List, NamedTuple, Union

from nfc_errors import MalformedFraming, ParseError, PayloadTooLarge, ReadFailed, ReaderIOError

logger = logging.getLogger(__name__)

BLOCK_SIZE = 4  # bytes per page
BASE_BLOCK = 4  # pages 0-3 hold UID, lock and CC bytes
LAST_BLOCK = 0xFF  # page numbers are one byte in the read and write commands
MAX_PAYLOAD_BYTES = 180


class Block(NamedTuple):
    index: int
    data: bytes


class Continue(NamedTuple):
    data: bytes


class EndOfData(NamedTuple):
    data: bytes


class Fault(NamedTuple):
    cause: ReaderIOError


BlockRead = Union[Continue, EndOfData, Fault]
ReadBlock = Callable[[int, int], bytes]


def serialize_payload(payload: dict) -> bytes:
    """Serialize like JSON.stringify: no whitespace, non-ASCII kept as UTF-8"""
    if not isinstance(payload, dict):
        raise TypeError(f"payload must be a JSON object, got {type(payload).__name__}")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def pad_to_blocks(data: bytes) -> bytes:
    padding_length = -len(data) % BLOCK_SIZE
    return data + (b"\x00" * padding_length)


def encode_payload(payload: dict) -> List[Block]:
    """Turn a payload into the pages to write, in write order"""
    data = serialize_payload(payload)
    if len(data) > MAX_PAYLOAD_BYTES:
        raise PayloadTooLarge(len(data), MAX_PAYLOAD_BYTES)

    padded = pad_to_blocks(data)
    blocks = [
        Block(BASE_BLOCK + i, padded[offset:offset + BLOCK_SIZE])
        for i, offset in enumerate(range(0, len(padded), BLOCK_SIZE))
    ]
    logger.debug("Encoded %d bytes into %d blocks", len(data), len(blocks))
    return blocks


def strip_nulls(data: bytes) -> bytes:
    return data.replace(b"\x00", b"")


def read_step(read_block: ReadBlock, index: int) -> BlockRead:
    """Read one page and classify it"""
    try:
        raw = read_block(index, BLOCK_SIZE)
    except ReaderIOError as e:
        return Fault(e)

    data = strip_nulls(bytes(raw))
    logger.debug("Read block %d: %r", index, data)
    if len(data) < BLOCK_SIZE:
        return EndOfData(data)
    return Continue(data)


def collect_blocks(read_block: ReadBlock, strict: bool = False) -> bytes:
    """
    Read pages from BASE_BLOCK until a partially filled page or a reader fault.

    A fault normally just ends the data: a read past the last page of the
    tag fails, and that is how a completely full tag terminates. With
    strict=True a fault raises ReadFailed instead. Reading never goes past
    LAST_BLOCK, even on a reader that keeps answering.
    """
    buffer = bytearray()
    index = BASE_BLOCK
    while True:
        if index > LAST_BLOCK:
            step = Fault(ReaderIOError(index, "beyond the last addressable page"))
        else:
            step = read_step(read_block, index)
        if isinstance(step, Fault):
            if strict:
                raise ReadFailed(index, step.cause)
            logger.debug("Read stopped at block %d: %s", index, step.cause)
            break
        buffer.extend(step.data)
        if isinstance(step, EndOfData):
            break
        index += 1
    return bytes(buffer)


def parse_tag_text(data: bytes) -> dict:
    """Validate the framing of reconstructed tag bytes and parse the JSON"""
    text = strip_nulls(data).decode("utf-8", errors="replace").strip()
    logger.debug("Reconstructed data string: %s", text)

    if not text.startswith("{") or not text.endswith("}"):
        raise MalformedFraming(text)

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(text, str(e)) from e


def decode_payload(read_block: ReadBlock, strict: bool = False) -> dict:
    return parse_tag_text(collect_blocks(read_block, strict=strict))


def decode_blocks(blocks: Iterable[Block]) -> dict:
    """Decode pages already in memory, as if read back from a tag holding only them"""
    pages = {block.index: block.data for block in blocks}

    def read_block(index: int, length: int) -> bytes:
        if index not in pages:
            raise ReaderIOError(index, "beyond end of data")
        return pages[index][:length]

    return decode_payload(read_block)
