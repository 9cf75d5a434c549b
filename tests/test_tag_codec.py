import pytest

from nfc_errors import MalformedFraming, ParseError, PayloadTooLarge, ReadFailed, ReaderIOError
from tag_codec import (
    BASE_BLOCK,
    BLOCK_SIZE,
    LAST_BLOCK,
    MAX_PAYLOAD_BYTES,
    Block,
    Continue,
    EndOfData,
    Fault,
    collect_blocks,
    decode_blocks,
    decode_payload,
    encode_payload,
    parse_tag_text,
    read_step,
    serialize_payload,
)
from tag_reader import MockTagReader


def pages_reader(pages, reads=None):
    """read_block over a dict of page -> bytes; missing pages fail like the end of a tag"""

    def read_block(index, length):
        if reads is not None:
            reads.append(index)
        if index not in pages:
            raise ReaderIOError(index, "no such page")
        return pages[index]

    return read_block


def test_serialize_matches_json_stringify():
    assert serialize_payload({"a": 1}) == b'{"a":1}'
    assert serialize_payload({"name": "café"}) == '{"name":"café"}'.encode("utf-8")


def test_serialize_rejects_non_objects():
    with pytest.raises(TypeError):
        serialize_payload([1, 2, 3])


def test_encode_small_object_into_two_blocks():
    blocks = encode_payload({"a": 1})

    assert blocks == [
        Block(4, b'{"a"'),
        Block(5, b':1}\x00'),
    ]


def test_encode_pads_to_block_multiple():
    for payload in ({}, {"a": 1}, {"ab": 1}, {"list": [1, 2, 3], "nested": {"x": None}}):
        data = serialize_payload(payload)
        blocks = encode_payload(payload)
        total = sum(len(b.data) for b in blocks)

        assert total % BLOCK_SIZE == 0
        assert total >= len(data)
        assert total - len(data) < BLOCK_SIZE
        assert [b.index for b in blocks] == list(range(BASE_BLOCK, BASE_BLOCK + len(blocks)))


def test_encode_accepts_exactly_max_size():
    payload = {"k": "x" * 172}
    assert len(serialize_payload(payload)) == MAX_PAYLOAD_BYTES

    blocks = encode_payload(payload)

    assert len(blocks) == MAX_PAYLOAD_BYTES // BLOCK_SIZE


def test_encode_rejects_one_byte_over():
    payload = {"k": "x" * 173}

    with pytest.raises(PayloadTooLarge) as excinfo:
        encode_payload(payload)

    assert excinfo.value.size == 181
    assert excinfo.value.limit == MAX_PAYLOAD_BYTES


def test_size_limit_counts_utf8_bytes():
    assert encode_payload({"k": "é" * 86})
    with pytest.raises(PayloadTooLarge):
        encode_payload({"k": "é" * 87})


@pytest.mark.parametrize("payload", [
    {},
    {"a": 1},
    {"ab": 1},
    {"id": 42, "name": "pallet-7", "tags": ["a", "b"], "active": True, "weight": 12.5},
    {"name": "café ☕", "note": None},
    {"k": "x" * 172},
])
def test_round_trip(payload):
    assert decode_blocks(encode_payload(payload)) == payload


def test_round_trip_through_mock_tag():
    tag = MockTagReader()
    for block in encode_payload({"a": 1}):
        tag.write_block(block.index, block.data)

    assert decode_payload(tag.read_block) == {"a": 1}


def test_read_step_classifies_blocks():
    read_block = pages_reader({4: b"abcd", 5: b"ef\x00\x00"})

    assert read_step(read_block, 4) == Continue(b"abcd")
    assert read_step(read_block, 5) == EndOfData(b"ef")
    assert isinstance(read_step(read_block, 6), Fault)


def test_read_step_strips_embedded_nulls():
    read_block = pages_reader({4: b"a\x00b\x00"})

    assert read_step(read_block, 4) == EndOfData(b"ab")


def test_short_block_stops_reading():
    reads = []
    read_block = pages_reader({4: b"abcd", 5: b"ef\x00\x00", 6: b"ghij"}, reads)

    assert collect_blocks(read_block) == b"abcdef"
    assert reads == [4, 5]


def test_reader_fault_ends_data_quietly():
    reads = []
    read_block = pages_reader({4: b'{"ab', 5: b'":1}'}, reads)

    assert decode_payload(read_block) == {"ab": 1}
    assert reads == [4, 5, 6]


def test_reader_fault_raises_in_strict_mode():
    read_block = pages_reader({4: b'{"ab', 5: b'":1}'})

    with pytest.raises(ReadFailed) as excinfo:
        decode_payload(read_block, strict=True)

    assert excinfo.value.block_index == 6


def test_reading_stops_at_last_addressable_page():
    reads = []

    def endless(index, length):
        reads.append(index)
        return b"aaaa"

    data = collect_blocks(endless)

    assert reads[-1] == LAST_BLOCK
    assert len(data) == (LAST_BLOCK - BASE_BLOCK + 1) * BLOCK_SIZE


def test_last_addressable_page_is_a_fault_in_strict_mode():
    with pytest.raises(ReadFailed) as excinfo:
        collect_blocks(lambda index, length: b"aaaa", strict=True)

    assert excinfo.value.block_index == LAST_BLOCK + 1


def test_fault_on_first_block_is_malformed():
    with pytest.raises(MalformedFraming):
        decode_payload(pages_reader({}))


def test_unbraced_text_is_malformed_framing():
    read_block = pages_reader({4: b"hell", 5: b"o\x00\x00\x00"})

    with pytest.raises(MalformedFraming) as excinfo:
        decode_payload(read_block)

    assert excinfo.value.text == "hello"


def test_blank_tag_is_malformed_framing():
    tag = MockTagReader()

    with pytest.raises(MalformedFraming):
        decode_payload(tag.read_block)


def test_invalid_json_inside_braces_is_parse_error():
    with pytest.raises(ParseError):
        parse_tag_text(b'{"a":}')


def test_parse_trims_whitespace_and_nulls():
    assert parse_tag_text(b'  {"a":1}\n\x00\x00') == {"a": 1}
