"""
Index Array Codecs
==================

Pure functions that turn raw NBT payloads into flat palette index arrays:

- LEB128 varint byte arrays (Sponge ``BlockData``)
- Bit-packed 64-bit word arrays (Litematica ``BlockStates``), in both the
  spanning layout (entries may straddle two words) and the non-spanning
  layout (each word is padded so entries never cross a boundary)

Decoders are vectorised with numpy. The int32 output is allocated once and
filled in fixed-size chunks, so working memory does not grow with the grid.
"""

import logging
from enum import Enum
from typing import Iterable, Optional, Tuple

import numpy as np

from schemscope.errors import TruncatedDataError

logger = logging.getLogger(__name__)

WORD_BITS = 64
UINT64_MASK = (1 << WORD_BITS) - 1
UINT32_MASK = 0xFFFFFFFF

# Entries (or varint bytes) handled per vectorised step
DECODE_CHUNK = 1 << 16


class PackingLayout(Enum):
    """Bit layouts used by packed long arrays."""
    SPANNING = "spanning"
    NON_SPANNING = "non-spanning"


def _as_bytes(data) -> np.ndarray:
    """View a byte buffer (signed or unsigned) as a flat uint8 array."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        return np.frombuffer(data, dtype=np.uint8)
    array = np.asarray(data)
    if array.dtype.itemsize == 1 and array.dtype.kind in 'iu':
        return array.view(np.uint8).ravel()
    return (array.astype(np.int64) & 0xFF).astype(np.uint8).ravel()


def _as_words(words) -> np.ndarray:
    """View a long array as unsigned 64-bit words."""
    array = np.asarray(words)
    if array.dtype == object:
        return np.array([int(w) & UINT64_MASK for w in array.ravel()], dtype=np.uint64)
    if array.dtype.kind == 'u':
        return array.astype(np.uint64, copy=False).ravel()
    # Signed words are reinterpreted, not converted
    return array.astype(np.int64, copy=False).view(np.uint64).ravel()


# ─── Varint (LEB128) ───

def _decode_varint_block(block: np.ndarray, ends: np.ndarray, out: np.ndarray):
    """
    Decode complete varints into ``out``.

    ``block`` holds whole varints only; ``ends`` are the positions of their
    terminating bytes.
    """
    if len(ends) == len(block):
        # Every value fits in one byte
        out[:] = block
        return

    starts = np.empty(len(ends), dtype=np.intp)
    starts[0] = 0
    starts[1:] = ends[:-1] + 1
    lengths = ends - starts + 1

    # 7-bit group position of every byte within its own varint
    shift = np.arange(len(block), dtype=np.uint32)
    shift -= np.repeat(starts.astype(np.uint32), lengths)
    shift *= np.uint32(7)

    payload = (block & 0x7F).astype(np.uint32)
    payload[shift >= 32] = 0
    # uint32 arithmetic drops bits above 31
    payload <<= np.minimum(shift, np.uint32(31))

    out[:] = np.bitwise_or.reduceat(payload, starts).view(np.int32)


def decode_varint_array(data, expected_count: int) -> np.ndarray:
    """
    Decode ``expected_count`` LEB128 varints from a byte buffer.

    Each element collects the low 7 bits of consecutive bytes, least
    significant group first, until a byte without the continuation bit.
    Results wrap to signed 32-bit integers.

    Args:
        data: bytes, bytearray or an integer array (e.g. nbtlib.ByteArray)
        expected_count: Number of elements to decode

    Returns:
        numpy int32 array of length expected_count

    Raises:
        TruncatedDataError: If the buffer ends before all elements are read
    """
    raw = _as_bytes(data)
    if expected_count <= 0:
        return np.zeros(0, dtype=np.int32)

    out = np.empty(expected_count, dtype=np.int32)
    done = 0
    pos = 0
    span = DECODE_CHUNK

    while done < expected_count:
        remaining = expected_count - done
        window = raw[pos:pos + span]
        ends = np.flatnonzero(window < 0x80)
        at_end = pos + span >= len(raw)

        if len(ends) < remaining and at_end:
            raise TruncatedDataError(
                f"Unexpected end of varint data at index {done + len(ends)} "
                f"({len(raw)} bytes for {expected_count} entries)"
            )
        if not len(ends):
            # A single varint longer than the window
            span *= 2
            continue

        ends = ends[:remaining]
        block = window[:ends[-1] + 1]
        _decode_varint_block(block, ends, out[done:done + len(ends)])

        done += len(ends)
        pos += len(block)
        span = DECODE_CHUNK

    return out


def encode_varint_array(values: Iterable[int]) -> bytes:
    """Encode integers as consecutive LEB128 varints (32-bit two's complement)."""
    out = bytearray()
    for value in values:
        value = int(value) & UINT32_MASK
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                out.append(byte | 0x80)
            else:
                out.append(byte)
                break
    return bytes(out)


# ─── Bit-packed long arrays ───

def bits_per_entry(palette_size: int) -> int:
    """Bits used per packed entry: ceil(log2(palette_size)), at least 2."""
    return max(2, (palette_size - 1).bit_length())


def expected_word_counts(palette_size: int, expected_count: int) -> Tuple[int, int]:
    """
    Word counts a packed array of ``expected_count`` entries should have.

    Returns:
        Tuple of (spanning_words, non_spanning_words)
    """
    bits = bits_per_entry(palette_size)
    entries_per_long = WORD_BITS // bits
    spanning = -(-expected_count * bits // WORD_BITS)
    non_spanning = -(-expected_count // entries_per_long)
    return spanning, non_spanning


def detect_packing_layout(word_count: int, palette_size: int,
                          expected_count: int) -> PackingLayout:
    """
    Pick the packing layout from the length of the word array.

    The array is spanning only when the two expectations differ and its
    length matches the spanning one. When both expectations coincide and
    the layouts would actually place entries differently the choice cannot
    be made from the data; a warning is logged and non-spanning is used.
    """
    spanning, non_spanning = expected_word_counts(palette_size, expected_count)
    if spanning != non_spanning:
        if word_count == spanning:
            return PackingLayout.SPANNING
        return PackingLayout.NON_SPANNING

    bits = bits_per_entry(palette_size)
    if WORD_BITS % bits and expected_count > WORD_BITS // bits:
        logger.warning(
            "Packed array of %d words fits both spanning and non-spanning "
            "layouts (%d entries, %d bits each); decoding as non-spanning",
            word_count, expected_count, bits,
        )
    return PackingLayout.NON_SPANNING


def _unpack_spanning(packed: np.ndarray, first: int, last: int, bits: int) -> np.ndarray:
    """Entries first..last-1; an entry may continue into the next word."""
    start_bit = np.arange(first, last, dtype=np.uint64) * np.uint64(bits)
    word = (start_bit >> np.uint64(6)).astype(np.intp)
    offset = start_bit & np.uint64(WORD_BITS - 1)
    del start_bit

    values = packed[word] >> offset
    straddles = np.flatnonzero(offset > np.uint64(WORD_BITS - bits))
    if len(straddles):
        values[straddles] |= packed[word[straddles] + 1] << (np.uint64(WORD_BITS) - offset[straddles])
    return values


def _unpack_non_spanning(packed: np.ndarray, first: int, last: int, bits: int) -> np.ndarray:
    """Entries first..last-1; each word holds floor(64 / bits) whole entries."""
    per_long = WORD_BITS // bits
    index = np.arange(first, last, dtype=np.intp)
    word = index // per_long
    offset = ((index % per_long) * bits).astype(np.uint64)
    return packed[word] >> offset


def decode_packed_array(words, palette_size: int, expected_count: int,
                        layout: Optional[PackingLayout] = None) -> np.ndarray:
    """
    Unpack fixed-width palette indices from an array of 64-bit words.

    Args:
        words: Long array (signed or unsigned 64-bit values)
        palette_size: Number of palette entries, which sets the entry width
        expected_count: Number of entries to decode
        layout: Force a layout instead of detecting it from the array length

    Returns:
        numpy int32 array of length expected_count
    """
    packed = _as_words(words)
    bits = bits_per_entry(palette_size)
    if layout is None:
        layout = detect_packing_layout(len(packed), palette_size, expected_count)

    logger.debug("Unpacking %d entries at %d bits from %d words (%s)",
                 expected_count, bits, len(packed), layout.value)

    if expected_count <= 0:
        return np.zeros(0, dtype=np.int32)

    spanning, non_spanning = expected_word_counts(palette_size, expected_count)
    if layout is PackingLayout.SPANNING:
        needed, unpack = spanning, _unpack_spanning
    else:
        needed, unpack = non_spanning, _unpack_non_spanning

    # Missing trailing words read as zero
    if len(packed) < needed:
        packed = np.concatenate((packed, np.zeros(needed - len(packed), dtype=np.uint64)))

    mask = np.uint64((1 << bits) - 1)
    out = np.empty(expected_count, dtype=np.int32)
    for first in range(0, expected_count, DECODE_CHUNK):
        last = min(first + DECODE_CHUNK, expected_count)
        values = unpack(packed, first, last, bits)
        values &= mask
        out[first:last] = values

    return out


def pack_array(values: Iterable[int], palette_size: int,
               layout: PackingLayout = PackingLayout.NON_SPANNING) -> np.ndarray:
    """
    Pack palette indices into 64-bit words, the inverse of decode_packed_array.

    Returns:
        numpy int64 array holding the words as signed values, the way NBT
        long arrays store them
    """
    bits = bits_per_entry(palette_size)
    mask = (1 << bits) - 1
    values = [int(v) & mask for v in values]

    if layout is PackingLayout.SPANNING:
        words = [0] * (-(-len(values) * bits // WORD_BITS))
        for i, value in enumerate(values):
            word, offset = divmod(i * bits, WORD_BITS)
            words[word] |= (value << offset) & UINT64_MASK
            if offset + bits > WORD_BITS:
                words[word + 1] |= value >> (WORD_BITS - offset)
    else:
        entries_per_long = WORD_BITS // bits
        words = [0] * (-(-len(values) // entries_per_long))
        for i, value in enumerate(values):
            word, slot = divmod(i, entries_per_long)
            words[word] |= value << (slot * bits)

    return np.array(words, dtype=np.uint64).view(np.int64)
