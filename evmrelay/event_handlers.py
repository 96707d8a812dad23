"""Handlers that turn bridge events in a block range into queued messages."""

from __future__ import annotations

import logging
import queue
import threading
from enum import Enum
from typing import Any, Protocol

from evmrelay.events import Deposit, RetryEvent
from evmrelay.transfer import Message

logger = logging.getLogger(__name__)


class PropStatus(str, Enum):
    """Execution status of a proposal as recorded locally."""

    MISSING = "missing"
    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"


class EventFetchError(RuntimeError):
    """Raised when events cannot be fetched from the chain."""


class EventListener(Protocol):
    def fetch_retry_events(self, contract_address: Any, start_block: int, end_block: int) -> list[RetryEvent]: ...

    def fetch_retry_deposit_events(
        self, event: RetryEvent, bridge_address: Any, block_confirmations: int
    ) -> list[Deposit]: ...

    def fetch_deposits(self, contract_address: Any, start_block: int, end_block: int) -> list[Deposit]: ...


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


class PropStorer(Protocol):
    def store_prop_status(self, source: int, destination: int, deposit_nonce: int, status: PropStatus) -> None: ...

    def prop_status(self, source: int, destination: int, deposit_nonce: int) -> PropStatus: ...


def _group_by_destination(messages: list[Message]) -> dict[int, list[Message]]:
    grouped: dict[int, list[Message]] = {}
    for message in messages:
        grouped.setdefault(message.destination, []).append(message)
    return grouped


class RetryEventHandler:
    """Re-sends deposits named by Retry events, skipping executed ones."""

    def __init__(
        self,
        event_listener: EventListener,
        deposit_handler: DepositHandler,
        prop_storer: PropStorer,
        bridge_address: Any,
        domain_id: int,
        block_confirmations: int,
        msg_queue: queue.Queue,
    ) -> None:
        self._event_listener = event_listener
        self._deposit_handler = deposit_handler
        self._prop_storer = prop_storer
        self._bridge_address = bridge_address
        self._domain_id = domain_id
        self._block_confirmations = block_confirmations
        self._msg_queue = msg_queue

    def handle_events(self, start_block: int, end_block: int) -> None:
        try:
            retry_events = self._event_listener.fetch_retry_events(
                self._bridge_address, start_block, end_block
            )
        except Exception as exc:
            raise EventFetchError(f"unable to fetch retry events because of: {exc}") from exc

        messages: list[Message] = []
        for event in retry_events:
            try:
                messages.extend(self._retry_messages(event, start_block, end_block))
            except Exception:
                logger.exception("error occurred while handling retry event %r", event)

        for retries in _group_by_destination(messages).values():
            self._msg_queue.put(retries)

    def _retry_messages(self, event: RetryEvent, start_block: int, end_block: int) -> list[Message]:
        try:
            deposits = self._event_listener.fetch_retry_deposit_events(
                event, self._bridge_address, self._block_confirmations
            )
        except Exception as exc:
            logger.error("Unable to fetch deposit events from event %r: %s", event, exc)
            return []

        messages = []
        for deposit in deposits:
            message_id = (
                f"retry-{self._domain_id}-{deposit.destination_domain_id}-{start_block}-{end_block}"
            )
            try:
                msg = self._deposit_handler.handle_deposit(
                    self._domain_id,
                    deposit.destination_domain_id,
                    deposit.deposit_nonce,
                    deposit.resource_id,
                    deposit.data,
                    deposit.handler_response,
                    message_id,
                )
            except Exception as exc:
                logger.error("Failed handling deposit %r: %s", deposit, exc)
                continue
            try:
                executed = self._is_executed(msg)
            except Exception as exc:
                logger.error("Failed checking if deposit executed %r: %s", deposit, exc)
                continue
            if executed:
                logger.debug("Deposit marked as executed %r", deposit)
                continue
            logger.info(
                "Resolved retry message %r in block range: %s-%s", msg, start_block, end_block
            )
            messages.append(msg)
        return messages

    def _is_executed(self, msg: Message) -> bool:
        nonce = msg.transfer_data().deposit_nonce
        status = self._prop_storer.prop_status(msg.source, msg.destination, nonce)
        if status == PropStatus.EXECUTED:
            return True
        # A stuck proposal is marked failed so that it can be retried.
        if status == PropStatus.PENDING:
            self._prop_storer.store_prop_status(
                msg.source, msg.destination, nonce, PropStatus.FAILED
            )
        return False


class DepositEventHandler:
    """Turns Deposit events into messages grouped by destination domain."""

    def __init__(
        self,
        event_listener: EventListener,
        deposit_handler: DepositHandler,
        bridge_address: Any,
        domain_id: int,
        msg_queue: queue.Queue,
    ) -> None:
        self._event_listener = event_listener
        self._deposit_handler = deposit_handler
        self._bridge_address = bridge_address
        self._domain_id = domain_id
        self._msg_queue = msg_queue

    def handle_events(self, start_block: int, end_block: int) -> None:
        try:
            deposits = self._event_listener.fetch_deposits(
                self._bridge_address, start_block, end_block
            )
        except Exception as exc:
            raise EventFetchError(f"unable to fetch deposit events because of: {exc}") from exc

        messages: list[Message] = []
        for deposit in deposits:
            message_id = (
                f"{self._domain_id}-{deposit.destination_domain_id}-{start_block}-{end_block}"
            )
            try:
                msg = self._deposit_handler.handle_deposit(
                    self._domain_id,
                    deposit.destination_domain_id,
                    deposit.deposit_nonce,
                    deposit.resource_id,
                    deposit.data,
                    deposit.handler_response,
                    message_id,
                )
            except Exception as exc:
                logger.error(
                    "%s (start block %s, end block %s, domainID %s)",
                    exc, start_block, end_block, self._domain_id,
                )
                continue
            logger.debug(
                "Resolved message %r in block range: %s-%s", msg, start_block, end_block
            )
            messages.append(msg)

        # Delivery must not block the listener when the queue is full.
        for batch in _group_by_destination(messages).values():
            threading.Thread(target=self._msg_queue.put, args=(batch,), daemon=True).start()