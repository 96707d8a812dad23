"""Building destination-chain proposals from transfer messages."""

from __future__ import annotations

from typing import Any, Callable

from evmrelay.abi import AbiError, encode_erc1155, left_pad
from evmrelay.transfer import (
    TRANSFER_PROPOSAL_TYPE,
    Message,
    Proposal,
    TransferProposalData,
    TransferType,
)


class MessageHandlerError(ValueError):
    """Raised when a message cannot be turned into a proposal."""


def _uint_bytes(value: int) -> bytes:
    """Minimal big-endian bytes of a non-negative integer; empty for zero."""
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def _is_bytes(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray))


def _bytes_at(payload: list[Any], index: int, error: str) -> bytes:
    value = payload[index] if index < len(payload) else None
    if not _is_bytes(value):
        raise MessageHandlerError(error)
    return bytes(value)


def _is_uint_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(
        isinstance(item, int) and not isinstance(item, bool) for item in value
    )


def _proposal(msg: Message, data: bytes) -> Proposal:
    transfer = msg.transfer_data()
    return Proposal(
        source=msg.source,
        destination=msg.destination,
        data=TransferProposalData(
            deposit_nonce=transfer.deposit_nonce,
            resource_id=transfer.resource_id,
            metadata=transfer.metadata,
            data=data,
        ),
        message_id=msg.id,
        type=TRANSFER_PROPOSAL_TYPE,
    )


def permissionless_generic_message_handler(msg: Message) -> Proposal:
    """Encode a permissionless generic call into proposal data."""
    payload = msg.transfer_data().payload
    function_sig = _bytes_at(payload, 0, "wrong function signature format")
    contract_address = _bytes_at(payload, 1, "wrong contract address format")
    max_fee = _bytes_at(payload, 2, "wrong max fee format")
    depositor = _bytes_at(payload, 3, "wrong depositor data format")
    execution_data = _bytes_at(payload, 4, "wrong execution data format")

    data = b"".join(
        (
            left_pad(max_fee, 32),
            left_pad(_uint_bytes(len(function_sig)), 2),
            function_sig,
            bytes([len(contract_address) & 0xFF]),
            contract_address,
            bytes([len(depositor) & 0xFF]),
            depositor,
            execution_data,
        )
    )
    return _proposal(msg, data)


def erc20_message_handler(msg: Message) -> Proposal:
    """Encode a fungible transfer: amount, recipient and an optional message."""
    payload = msg.transfer_data().payload
    if len(payload) not in (2, 3):
        raise MessageHandlerError(f"wrong payload length {len(payload)}")
    amount = _bytes_at(payload, 0, "wrong payload amount format")
    recipient = _bytes_at(payload, 1, "wrong payload recipient format")

    data = left_pad(amount, 32) + left_pad(_uint_bytes(len(recipient)), 32) + recipient
    if len(payload) == 3:
        data += _bytes_at(payload, 2, "wrong optional message format")
    return _proposal(msg, data)


def erc721_message_handler(msg: Message) -> Proposal:
    """Encode a non-fungible transfer: token id, recipient and metadata."""
    payload = msg.transfer_data().payload
    if len(payload) != 3:
        raise MessageHandlerError("malformed payload. Len  of payload should be 3")
    token_id = _bytes_at(payload, 0, "wrong payload tokenID format")
    recipient = _bytes_at(payload, 1, "wrong payload recipient format")
    metadata = _bytes_at(payload, 2, "wrong payload metadata format")

    data = b"".join(
        (
            left_pad(token_id, 32),
            left_pad(_uint_bytes(len(recipient)), 32),
            recipient,
            left_pad(_uint_bytes(len(metadata)), 32),
            metadata,
        )
    )
    return _proposal(msg, data)


def erc1155_message_handler(msg: Message) -> Proposal:
    """ABI encode a semi-fungible transfer."""
    payload = msg.transfer_data().payload
    if len(payload) != 4:
        raise MessageHandlerError("malformed payload. Len  of payload should be 4")
    if not _is_uint_list(payload[0]):
        raise MessageHandlerError("wrong payload tokenID format")
    if not _is_uint_list(payload[1]):
        raise MessageHandlerError("wrong payload amount format")
    if not _is_bytes(payload[2]):
        raise MessageHandlerError("wrong payload recipient format")
    if len(payload[2]) != 20:
        raise MessageHandlerError("malformed payload. Len  of recipient should be 20")
    if not _is_bytes(payload[3]):
        raise MessageHandlerError("wrong payload transferData format")

    try:
        data = encode_erc1155(payload)
    except AbiError as exc:
        raise MessageHandlerError(str(exc)) from exc
    return _proposal(msg, data)


def generic_message_handler(msg: Message) -> Proposal:
    """Encode permissioned generic metadata with its length prefix."""
    payload = msg.transfer_data().payload
    if len(payload) != 1:
        raise MessageHandlerError("malformed payload. Len  of payload should be 1")
    metadata = _bytes_at(payload, 0, "wrong payload metadata format")
    return _proposal(msg, left_pad(_uint_bytes(len(metadata)), 32) + metadata)


_HANDLERS: dict[TransferType, Callable[[Message], Proposal]] = {
    TransferType.FUNGIBLE: erc20_message_handler,
    TransferType.SEMI_FUNGIBLE: erc1155_message_handler,
    TransferType.NON_FUNGIBLE: erc721_message_handler,
    TransferType.PERMISSIONED_GENERIC: generic_message_handler,
    TransferType.PERMISSIONLESS_GENERIC: permissionless_generic_message_handler,
}


class TransferMessageHandler:
    """Dispatches transfer messages to the handler for their transfer type."""

    def handle_message(self, msg: Message) -> Proposal:
        handler = _HANDLERS.get(msg.transfer_data().type)
        if handler is None:
            raise MessageHandlerError("wrong message type passed while handling message")
        return handler(msg)