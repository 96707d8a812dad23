"""EIP-712 hashing of proposal batches signed by the relayers."""

from __future__ import annotations

import re
from typing import Iterable

from Crypto.Hash import keccak as _keccak

from evmrelay.abi import left_pad
from evmrelay.transfer import Proposal

_DOMAIN_TYPE = (
    b"EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
_PROPOSAL_TYPE = (
    b"Proposal(uint8 originDomainID,uint64 depositNonce,bytes32 resourceID,bytes data)"
)
_PROPOSALS_TYPE = b"Proposals(Proposal[] proposals)" + _PROPOSAL_TYPE
_DOMAIN_NAME = b"Bridge"

_ADDRESS = re.compile(r"(?:0[xX])?([0-9a-fA-F]{40})")


def keccak256(data: bytes) -> bytes:
    """Return the Keccak-256 digest of data."""
    return _keccak.new(data=bytes(data), digest_bits=256).digest()


def _encode_uint(value: int, bits: int) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"invalid integer value {value!r} for type uint{bits}")
    if not 0 <= value < 1 << bits:
        raise ValueError(f"integer larger than 'uint{bits}'")
    return value.to_bytes(32, "big")


def _encode_address(value: str) -> bytes:
    match = _ADDRESS.fullmatch(value)
    if match is None:
        raise ValueError(f"provided data is not a valid address: {value!r}")
    return left_pad(bytes.fromhex(match.group(1)), 32)


def _hash_proposal(proposal: Proposal) -> bytes:
    data = proposal.transfer_data()
    resource_id = bytes(data.resource_id)
    if len(resource_id) != 32:
        raise ValueError(f"resource id must be 32 bytes, got {len(resource_id)}")
    return keccak256(
        keccak256(_PROPOSAL_TYPE)
        + _encode_uint(proposal.source, 8)
        + _encode_uint(data.deposit_nonce, 64)
        + resource_id
        + keccak256(data.data)
    )


def proposals_hash(
    proposals: Iterable[Proposal],
    chain_id: int,
    verifying_contract: str,
    bridge_version: str,
) -> bytes:
    """Return the EIP-712 digest the relayers sign for a batch of proposals."""
    domain_separator = keccak256(
        keccak256(_DOMAIN_TYPE)
        + keccak256(_DOMAIN_NAME)
        + keccak256(bridge_version.encode())
        + _encode_uint(chain_id, 256)
        + _encode_address(verifying_contract)
    )
    items = b"".join(_hash_proposal(proposal) for proposal in proposals)
    message_hash = keccak256(keccak256(_PROPOSALS_TYPE) + keccak256(items))
    return keccak256(b"\x19\x01" + domain_separator + message_hash)