"""Ethereum ABI encoding and decoding for bridge payloads and events."""

from __future__ import annotations

from typing import Any, Callable

WORD = 32


class AbiError(ValueError):
    """Raised when data cannot be ABI encoded or decoded."""


def left_pad(data: bytes, size: int) -> bytes:
    """Pad data with leading zero bytes up to size; longer data is unchanged."""
    data = bytes(data)
    if len(data) >= size:
        return data
    return bytes(size - len(data)) + data


def _uint256(value: Any) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise AbiError(f"cannot encode {value!r} as uint256")
    if not 0 <= value < 1 << 256:
        raise AbiError(f"value {value} out of uint256 range")
    return value.to_bytes(WORD, "big")


def _encode_bytes(value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise AbiError(f"cannot encode {type(value).__name__} as bytes")
    return _uint256(len(value)) + bytes(value) + bytes(-len(value) % WORD)


def _encode_uint_array(values: Any) -> bytes:
    if not isinstance(values, (list, tuple)):
        raise AbiError(f"cannot encode {type(values).__name__} as uint256[]")
    return _uint256(len(values)) + b"".join(_uint256(v) for v in values)


def _join_dynamic(parts: list[bytes]) -> bytes:
    heads = []
    offset = WORD * len(parts)
    for part in parts:
        heads.append(_uint256(offset))
        offset += len(part)
    return b"".join(heads) + b"".join(parts)


_ERC1155_ENCODERS: tuple[Callable[[Any], bytes], ...] = (
    _encode_uint_array,
    _encode_uint_array,
    _encode_bytes,
    _encode_bytes,
)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)

    def _check(self, start: int, end: int) -> None:
        if start < 0 or end > len(self.data):
            raise AbiError(
                f"abi: length insufficient {len(self.data)} require {end}"
            )

    def word(self, offset: int) -> int:
        self._check(offset, offset + WORD)
        return int.from_bytes(self.data[offset:offset + WORD], "big")

    def uint(self, offset: int, bits: int) -> int:
        value = self.word(offset)
        if value >> bits:
            raise AbiError(f"abi: improper uint{bits} value")
        return value

    def fixed_bytes(self, offset: int, size: int) -> bytes:
        self._check(offset, offset + WORD)
        return self.data[offset:offset + size]

    def _tail(self, head_offset: int) -> tuple[int, int]:
        pointer = self.word(head_offset)
        length = self.word(pointer)
        return pointer + WORD, length

    def dynamic_bytes(self, head_offset: int) -> bytes:
        start, length = self._tail(head_offset)
        self._check(start, start + length)
        return self.data[start:start + length]

    def uint_array(self, head_offset: int) -> list[int]:
        start, length = self._tail(head_offset)
        self._check(start, start + length * WORD)
        return [self.word(start + WORD * position) for position in range(length)]


def encode_erc1155(values: Any) -> bytes:
    """Encode (uint256[] tokenIDs, uint256[] amounts, bytes recipient, bytes transferData)."""
    try:
        values = list(values)
    except TypeError as exc:
        raise AbiError("erc1155 values must be a sequence") from exc
    if len(values) != len(_ERC1155_ENCODERS):
        raise AbiError(f"argument count mismatch: got {len(values)} for 4")
    return _join_dynamic([encode(value) for encode, value in zip(_ERC1155_ENCODERS, values)])


def decode_erc1155(data: bytes) -> list[Any]:
    """Decode ERC1155 calldata into [token_ids, amounts, recipient, transfer_data]."""
    reader = _Reader(data)
    return [
        reader.uint_array(0),
        reader.uint_array(WORD),
        reader.dynamic_bytes(2 * WORD),
        reader.dynamic_bytes(3 * WORD),
    ]


def decode_deposit_data(data: bytes) -> tuple[int, bytes, int, bytes, bytes]:
    """Decode the non-indexed fields of a Deposit event.

    Returns (destination_domain_id, resource_id, deposit_nonce, data, handler_response).
    """
    reader = _Reader(data)
    if not reader.data:
        raise AbiError("abi: attempting to unmarshal an empty string while arguments are expected")
    return (
        reader.uint(0, 8),
        reader.fixed_bytes(WORD, 32),
        reader.uint(2 * WORD, 64),
        reader.dynamic_bytes(3 * WORD),
        reader.dynamic_bytes(4 * WORD),
    )


def decode_string_data(data: bytes) -> str:
    """Decode event data holding a single ABI string."""
    raw = _Reader(data).dynamic_bytes(0)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise AbiError("abi: string is not valid utf-8") from exc