"""Transfer messages and proposals exchanged between bridge domains."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

TRANSFER_MESSAGE_TYPE = "TransferMessage"
TRANSFER_PROPOSAL_TYPE = "TransferProposal"


class TransferType(str, Enum):
    """Kind of asset or call a transfer carries."""

    FUNGIBLE = "FungibleTransfer"
    NON_FUNGIBLE = "NonFungibleTransfer"
    SEMI_FUNGIBLE = "SemiFungibleTransfer"
    PERMISSIONED_GENERIC = "PermissionedGenericTransfer"
    PERMISSIONLESS_GENERIC = "PermissionlessGenericTransfer"


@dataclass
class TransferMessageData:
    """Deposit details read on the source chain."""

    deposit_nonce: int = 0
    resource_id: bytes = bytes(32)
    metadata: dict[str, Any] | None = None
    payload: list[Any] = field(default_factory=list)
    type: TransferType | None = None


@dataclass
class TransferProposalData:
    """Proposal details to be executed on the destination chain."""

    deposit_nonce: int = 0
    resource_id: bytes = bytes(32)
    metadata: dict[str, Any] | None = None
    data: bytes = b""


@dataclass
class Message:
    """A message travelling from a source domain to a destination domain."""

    source: int = 0
    destination: int = 0
    data: Any = None
    id: str = ""
    type: str = ""

    def transfer_data(self) -> TransferMessageData:
        """Return the data as transfer message data, or raise TypeError."""
        if not isinstance(self.data, TransferMessageData):
            raise TypeError(
                f"message data is {type(self.data).__name__}, not TransferMessageData"
            )
        return self.data


@dataclass
class Proposal:
    """A proposal built from a message, ready for execution."""

    source: int = 0
    destination: int = 0
    data: Any = None
    message_id: str = ""
    type: str = ""

    def transfer_data(self) -> TransferProposalData:
        """Return the data as transfer proposal data, or raise TypeError."""
        if not isinstance(self.data, TransferProposalData):
            raise TypeError(
                f"proposal data is {type(self.data).__name__}, not TransferProposalData"
            )
        return self.data