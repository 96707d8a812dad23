"""Bridge contract events and a listener that reads them from a chain client."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from evmrelay.abi import AbiError, decode_deposit_data, decode_string_data, left_pad
from evmrelay.proposal import keccak256

logger = logging.getLogger(__name__)


class EventSig(str, Enum):
    """Signatures of the bridge contract events."""

    DEPOSIT = "Deposit(uint8,bytes32,uint64,address,bytes,bytes)"
    START_KEYGEN = "StartKeygen()"
    START_FROST_KEYGEN = "StartedFROSTKeygen()"
    KEY_REFRESH = "KeyRefresh(string)"
    PROPOSAL_EXECUTION = "ProposalExecution(uint8,uint64,bytes32,bytes)"
    FEE_CHANGED = "FeeChanged(uint256)"
    RETRY = "Retry(string)"
    FEE_HANDLER_CHANGED = "FeeHandlerChanged(address)"

    def topic(self) -> bytes:
        """Return the log topic identifying this event."""
        return keccak256(self.value.encode())


@dataclass
class Refresh:
    """Key refresh event; hash is the SHA1 hash of the topology file."""

    hash: str = ""


@dataclass
class RetryEvent:
    """Request to retry the deposits of a transaction."""

    tx_hash: str = ""


@dataclass
class Deposit:
    """A deposit made on the source chain."""

    destination_domain_id: int = 0
    resource_id: bytes = bytes(32)
    deposit_nonce: int = 0
    sender_address: bytes = bytes(20)
    data: bytes = b""
    handler_response: bytes = b""


@dataclass
class Log:
    """An event log emitted by a contract."""

    address: bytes = bytes(20)
    topics: list[bytes] = field(default_factory=list)
    data: bytes = b""
    block_number: int = 0
    tx_hash: bytes = bytes(32)


@dataclass
class Receipt:
    """A transaction receipt."""

    block_number: int = 0
    logs: list[Log] = field(default_factory=list)


class ChainClient(Protocol):
    def fetch_event_logs(
        self, contract_address: Any, event: str, start_block: int, end_block: int
    ) -> list[Log]: ...

    def wait_and_return_tx_receipt(self, tx_hash: bytes) -> Receipt: ...

    def latest_block(self) -> int: ...


_HEX_PAIRS = re.compile(r"(?:[0-9a-fA-F]{2})*")


def _fit(raw: bytes, size: int) -> bytes:
    return left_pad(bytes(raw)[-size:], size)


def _hex_to_bytes(text: str, size: int) -> bytes:
    if text[:2] in ("0x", "0X"):
        text = text[2:]
    if len(text) % 2:
        text = "0" + text
    return _fit(bytes.fromhex(_HEX_PAIRS.match(text).group()), size)


def _to_address(value: Any) -> bytes:
    if isinstance(value, str):
        return _hex_to_bytes(value, 20)
    return _fit(value, 20)


def _unpack_deposit(data: bytes) -> Deposit:
    destination, resource_id, nonce, payload, response = decode_deposit_data(data)
    return Deposit(
        destination_domain_id=destination,
        resource_id=resource_id,
        deposit_nonce=nonce,
        data=payload,
        handler_response=response,
    )


class Listener:
    """Fetches and decodes bridge events through a chain client."""

    def __init__(self, client: ChainClient) -> None:
        self._client = client

    def fetch_deposits(self, contract_address: Any, start_block: int, end_block: int) -> list[Deposit]:
        logs = self._client.fetch_event_logs(
            contract_address, EventSig.DEPOSIT.value, start_block, end_block
        )
        deposits = []
        for entry in logs:
            try:
                deposit = _unpack_deposit(entry.data)
            except AbiError as exc:
                logger.error("failed unpacking deposit event log: %s", exc)
                continue
            deposit.sender_address = _to_address(entry.topics[1])
            logger.debug(
                "Found deposit log in block: %d, TxHash: 0x%s, contractAddress: 0x%s, sender: 0x%s",
                entry.block_number,
                bytes(entry.tx_hash).hex(),
                _to_address(entry.address).hex(),
                deposit.sender_address.hex(),
            )
            deposits.append(deposit)
        return deposits

    def fetch_retry_deposit_events(
        self, event: RetryEvent, bridge_address: Any, block_confirmations: int
    ) -> list[Deposit]:
        tx_hash = _hex_to_bytes(event.tx_hash, 32)
        try:
            receipt = self._client.wait_and_return_tx_receipt(tx_hash)
        except Exception as exc:
            raise RuntimeError(
                f"unable to fetch logs for retried deposit 0x{tx_hash.hex()}, because of: {exc}"
            ) from exc
        latest_block = self._client.latest_block()
        confirmed_block = receipt.block_number + block_confirmations
        if latest_block <= confirmed_block:
            raise RuntimeError(
                f"latest block {latest_block} not higher than receipt block number "
                f"+ block confirmations {confirmed_block}"
            )

        bridge = _to_address(bridge_address)
        deposits = []
        for entry in receipt.logs:
            if _to_address(entry.address) != bridge:
                continue
            try:
                deposits.append(_unpack_deposit(entry.data))
            except AbiError:
                continue
        return deposits

    def fetch_retry_events(self, contract_address: Any, start_block: int, end_block: int) -> list[RetryEvent]:
        logs = self._client.fetch_event_logs(
            contract_address, EventSig.RETRY.value, start_block, end_block
        )
        retry_events = []
        for entry in logs:
            try:
                retry_events.append(RetryEvent(tx_hash=decode_string_data(entry.data)))
            except AbiError as exc:
                logger.error(
                    "failed unpacking retry event with txhash 0x%s, because of: %s",
                    bytes(entry.tx_hash).hex(),
                    exc,
                )
        return retry_events

    def fetch_keygen_events(self, contract_address: Any, start_block: int, end_block: int) -> list[Log]:
        return self._client.fetch_event_logs(
            contract_address, EventSig.START_KEYGEN.value, start_block, end_block
        )

    def fetch_frost_keygen_events(self, contract_address: Any, start_block: int, end_block: int) -> list[Log]:
        return self._client.fetch_event_logs(
            contract_address, EventSig.START_FROST_KEYGEN.value, start_block, end_block
        )

    def fetch_refresh_events(self, contract_address: Any, start_block: int, end_block: int) -> list[Refresh]:
        logs = self._client.fetch_event_logs(
            contract_address, EventSig.KEY_REFRESH.value, start_block, end_block
        )
        refresh_events = []
        for entry in logs:
            try:
                refresh_events.append(self.unpack_refresh(entry.data))
            except AbiError as exc:
                logger.error("failed unpacking refresh event log: %s", exc)
        return refresh_events

    def unpack_refresh(self, data: bytes) -> Refresh:
        """Decode a KeyRefresh event's data; raises AbiError when malformed."""
        return Refresh(hash=decode_string_data(data))