"""Turning bridge deposit event data into transfer messages."""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol

from evmrelay.abi import AbiError, decode_erc1155
from evmrelay.transfer import (
    TRANSFER_MESSAGE_TYPE,
    Message,
    TransferMessageData,
    TransferType,
)

logger = logging.getLogger(__name__)

_UINT64_MASK = (1 << 64) - 1
_HEX_PAIRS = re.compile(r"(?:[0-9a-fA-F]{2})*")


class DepositHandlerError(ValueError):
    """Raised when deposit data cannot be turned into a message."""


class DepositHandler(Protocol):
    def handle_deposit(
        self,
        source_id: int,
        dest_id: int,
        nonce: int,
        resource_id: bytes,
        calldata: bytes,
        handler_response: bytes,
        message_id: str,
    ) -> Message: ...


class HandlerMatcher(Protocol):
    def get_handler_address_for_resource_id(self, resource_id: bytes) -> Any: ...


def _address(value: Any) -> bytes:
    """Normalise a hex string or raw bytes into a 20-byte address."""
    if isinstance(value, str):
        text = value[2:] if value[:2] in ("0x", "0X") else value
        if len(text) % 2:
            text = "0" + text
        raw = bytes.fromhex(_HEX_PAIRS.match(text).group())
    else:
        raw = bytes(value)
    raw = raw[-20:]
    return bytes(20 - len(raw)) + raw


def _slice(calldata: bytes, start: int, end: int) -> bytes:
    if end > len(calldata):
        raise DepositHandlerError(
            f"invalid calldata: slice [{start}:{end}] out of range for length {len(calldata)}"
        )
    return calldata[start:end]


def _int(raw: bytes) -> int:
    return int.from_bytes(raw, "big")


def _message(
    source_id: int,
    dest_id: int,
    nonce: int,
    resource_id: bytes,
    metadata: dict[str, Any] | None,
    payload: list[Any],
    transfer_type: TransferType,
    message_id: str,
) -> Message:
    return Message(
        source=source_id,
        destination=dest_id,
        data=TransferMessageData(
            deposit_nonce=nonce,
            resource_id=bytes(resource_id),
            metadata=metadata,
            payload=payload,
            type=transfer_type,
        ),
        id=message_id,
        type=TRANSFER_MESSAGE_TYPE,
    )


class ETHDepositHandler:
    """Routes deposits to the handler registered for the resource's handler address."""

    def __init__(self, handler_matcher: HandlerMatcher) -> None:
        self._handler_matcher = handler_matcher
        self._handlers: dict[bytes, DepositHandler] = {}

    def handle_deposit(
        self,
        source_id: int,
        dest_id: int,
        nonce: int,
        resource_id: bytes,
        calldata: bytes,
        handler_response: bytes,
        message_id: str,
    ) -> Message:
        handler_address = self._handler_matcher.get_handler_address_for_resource_id(resource_id)
        handler = self._handlers.get(_address(handler_address))
        if handler is None:
            raise DepositHandlerError("no corresponding deposit handler for this address exists")
        return handler.handle_deposit(
            source_id, dest_id, nonce, resource_id, calldata, handler_response, message_id
        )

    def register_deposit_handler(self, handler_address: str, handler: DepositHandler) -> None:
        """Associate a handler with a contract address; an empty address is ignored."""
        if handler_address == "":
            return
        logger.debug("Registered deposit handler for address %s", handler_address)
        self._handlers[_address(handler_address)] = handler


class Erc20DepositHandler:
    """Fungible token deposits; handler_response may be empty."""

    def handle_deposit(
        self,
        source_id: int,
        dest_id: int,
        nonce: int,
        resource_id: bytes,
        calldata: bytes,
        handler_response: bytes,
        message_id: str,
    ) -> Message:
        calldata = bytes(calldata)
        handler_response = bytes(handler_response or b"")
        if len(calldata) < 84:
            raise DepositHandlerError("invalid calldata length: less than 84 bytes")

        # A handler that converted the amount returns it in its response.
        amount = handler_response[:32] if handler_response else calldata[:32]
        recipient_length = _int(calldata[32:64])
        recipient = _slice(calldata, 64, 64 + recipient_length)
        payload: list[Any] = [amount, recipient]

        metadata: dict[str, Any] = {}
        optional_start = 64 + recipient_length
        if len(calldata) > optional_start + 32:
            metadata["gasLimit"] = _int(calldata[optional_start:optional_start + 32]) & _UINT64_MASK
            payload.append(calldata[optional_start:])

        return _message(
            source_id, dest_id, nonce, resource_id, metadata, payload,
            TransferType.FUNGIBLE, message_id,
        )


class Erc721DepositHandler:
    """Non-fungible token deposits."""

    def handle_deposit(
        self,
        source_id: int,
        dest_id: int,
        nonce: int,
        resource_id: bytes,
        calldata: bytes,
        handler_response: bytes,
        message_id: str,
    ) -> Message:
        calldata = bytes(calldata)
        if len(calldata) < 64:
            raise DepositHandlerError("invalid calldata length: less than 84 bytes")

        token_id = calldata[:32]
        recipient_length = _int(calldata[32:64])
        recipient = _slice(calldata, 64, 64 + recipient_length)
        metadata_length_start = 64 + recipient_length
        metadata_length = _int(_slice(calldata, metadata_length_start, metadata_length_start + 32))

        metadata = b""
        if metadata_length > 0:
            metadata_start = metadata_length_start + 32
            metadata = _slice(calldata, metadata_start, metadata_start + metadata_length)

        return _message(
            source_id, dest_id, nonce, resource_id, None,
            [token_id, recipient, metadata],
            TransferType.NON_FUNGIBLE, message_id,
        )


class Erc1155DepositHandler:
    """Semi-fungible token deposits, ABI encoded."""

    def handle_deposit(
        self,
        source_id: int,
        dest_id: int,
        nonce: int,
        resource_id: bytes,
        calldata: bytes,
        handler_response: bytes,
        message_id: str,
    ) -> Message:
        try:
            token_ids, amounts, recipient, transfer_data = decode_erc1155(bytes(calldata))
        except AbiError as exc:
            raise DepositHandlerError(str(exc)) from exc
        return _message(
            source_id, dest_id, nonce, resource_id, None,
            [token_ids, amounts, recipient, transfer_data],
            TransferType.SEMI_FUNGIBLE, message_id,
        )


class GenericDepositHandler:
    """Permissioned generic deposits carrying length-prefixed metadata."""

    def handle_deposit(
        self,
        source_id: int,
        dest_id: int,
        nonce: int,
        resource_id: bytes,
        calldata: bytes,
        handler_response: bytes,
        message_id: str,
    ) -> Message:
        calldata = bytes(calldata)
        if len(calldata) < 32:
            raise DepositHandlerError("invalid calldata length: less than 32 bytes")

        metadata_length = _int(calldata[:32])
        metadata = _slice(calldata, 32, 32 + metadata_length)
        return _message(
            source_id, dest_id, nonce, resource_id, None, [metadata],
            TransferType.PERMISSIONED_GENERIC, message_id,
        )


class PermissionlessGenericDepositHandler:
    """Permissionless generic deposits describing a contract call."""

    def handle_deposit(
        self,
        source_id: int,
        dest_id: int,
        nonce: int,
        resource_id: bytes,
        calldata: bytes,
        handler_response: bytes,
        message_id: str,
    ) -> Message:
        calldata = bytes(calldata)
        if len(calldata) < 76:
            raise DepositHandlerError("invalid calldata length: less than 76 bytes")

        max_fee = calldata[:32]

        function_sig_end = 34 + _int(calldata[32:34])
        function_sig = _slice(calldata, 34, function_sig_end)

        contract_length = _int(_slice(calldata, function_sig_end, function_sig_end + 1))
        contract_end = function_sig_end + 1 + contract_length
        contract_address = _slice(calldata, function_sig_end + 1, contract_end)

        depositor_length = _int(_slice(calldata, contract_end, contract_end + 1))
        depositor_end = contract_end + 1 + depositor_length
        depositor = _slice(calldata, contract_end + 1, depositor_end)
        execution_data = calldata[depositor_end:]

        metadata = {"gasLimit": _int(max_fee) & _UINT64_MASK}
        return _message(
            source_id, dest_id, nonce, resource_id, metadata,
            [function_sig, contract_address, max_fee, depositor, execution_data],
            TransferType.PERMISSIONLESS_GENERIC, message_id,
        )