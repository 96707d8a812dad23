"""Decoding and validation of EVM chain configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Mapping


class ConfigError(ValueError):
    """Raised when a chain configuration is malformed or invalid."""


@dataclass
class HandlerConfig:
    """A deposit handler contract and its kind."""

    address: str = ""
    type: str = ""


@dataclass
class GeneralChainConfig:
    """Settings shared by every kind of chain."""

    name: str = ""
    id: int | None = None
    endpoint: str = ""
    type: str = ""
    blockstore_path: str = ""
    fresh_start: bool = False
    latest_block: bool = False
    key: str = ""

    def validate(self) -> None:
        """Raise ConfigError when a required field is missing."""
        if self.id is None:
            raise ConfigError("required field domain.Id empty for chain")
        if self.endpoint == "":
            raise ConfigError(f"required field chain.Endpoint empty for chain {self.id}")
        if self.name == "":
            raise ConfigError(f"required field chain.Name empty for chain {self.id}")


@dataclass
class EVMConfig:
    """Decoded configuration of an EVM chain."""

    general_chain_config: GeneralChainConfig = field(default_factory=GeneralChainConfig)
    bridge: str = ""
    frost_keygen: str = ""
    handlers: list[HandlerConfig] = field(default_factory=list)
    max_gas_price: int = 0
    gas_multiplier: float = 0.0
    gas_limit: int = 0
    transfer_gas: int = 0
    gas_increase_percentage: int = 0
    start_block: int = 0
    block_confirmations: int = 0
    block_interval: int = 0
    block_retry_interval: timedelta = timedelta(0)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _string(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"'{key}' expected type 'string', got {type(value).__name__}")
    return value


def _integer(bits: int, signed: bool) -> Callable[[str, Any], int]:
    low = -(1 << (bits - 1)) if signed else 0
    high = (1 << (bits - 1)) if signed else (1 << bits)

    def decode(key: str, value: Any) -> int:
        if not _is_int(value):
            raise ConfigError(
                f"'{key}' expected type '{'int' if signed else 'uint'}{bits}', "
                f"got {type(value).__name__}"
            )
        if not low <= value < high:
            raise ConfigError(f"cannot parse '{key}', {value} out of range")
        return value

    return decode


def _float(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{key}' expected type 'float64', got {type(value).__name__}")
    return float(value)


_int64 = _integer(64, signed=True)
_uint64 = _integer(64, signed=False)
_uint8 = _integer(8, signed=False)

# (attribute, raw key, decoder, default applied when the value is zero)
_EVM_FIELDS: tuple[tuple[str, str, Callable[[str, Any], Any], Any], ...] = (
    ("bridge", "bridge", _string, None),
    ("frost_keygen", "frostKeygen", _string, None),
    ("max_gas_price", "maxGasPrice", _int64, 500000000000),
    ("gas_multiplier", "gasMultiplier", _float, 1.0),
    ("gas_increase_percentage", "gasIncreasePercentage", _int64, 15),
    ("gas_limit", "gasLimit", _int64, 15000000),
    ("transfer_gas", "transferGas", _uint64, 250000),
    ("start_block", "startBlock", _int64, None),
    ("block_confirmations", "blockConfirmations", _int64, 10),
    ("block_interval", "blockInterval", _int64, 5),
    ("block_retry_interval", "blockRetryInterval", _uint64, 5),
)

_GENERAL_FIELDS: tuple[tuple[str, str, Callable[[str, Any], Any]], ...] = (
    ("name", "name", _string),
    ("endpoint", "endpoint", _string),
    ("type", "type", _string),
    ("blockstore_path", "blockstorePath", _string),
    ("key", "key", _string),
)

_ZERO_VALUES = {_string: "", _float: 0.0}


def _lowered(mapping: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(mapping, Mapping):
        raise ConfigError(f"expected a map, got {type(mapping).__name__}")
    return {str(key).lower(): value for key, value in mapping.items()}


def _handler(entry: Any) -> HandlerConfig:
    if isinstance(entry, HandlerConfig):
        return HandlerConfig(address=entry.address, type=entry.type)
    raw = _lowered(entry)
    return HandlerConfig(
        address=_string("address", raw.get("address", "")),
        type=_string("type", raw.get("type", "")),
    )


def _handlers(value: Any) -> list[HandlerConfig]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"'handlers' expected a list, got {type(value).__name__}")
    return [_handler(entry) for entry in value]


def _general(raw: dict[str, Any]) -> GeneralChainConfig:
    values = {
        attr: decode(key, raw[key.lower()]) if key.lower() in raw else ""
        for attr, key, decode in _GENERAL_FIELDS
    }
    chain_id = _uint8("id", raw["id"]) if raw.get("id") is not None else None
    return GeneralChainConfig(id=chain_id, **values)


def new_evm_config(chain_config: Mapping[str, Any]) -> EVMConfig:
    """Decode, fill defaults into and validate a raw EVM chain configuration."""
    raw = _lowered(chain_config)
    general = _general(raw)
    handlers = _handlers(raw.get("handlers"))

    values: dict[str, Any] = {}
    for attr, key, decode, default in _EVM_FIELDS:
        zero = _ZERO_VALUES.get(decode, 0)
        value = decode(key, raw[key.lower()]) if key.lower() in raw else zero
        if value == zero and default is not None:
            value = default
        values[attr] = value

    general.validate()
    if values["bridge"] == "":
        raise ConfigError(f"required field chain.Bridge empty for chain {general.id}")
    if values["block_confirmations"] < 1:
        raise ConfigError("blockConfirmations has to be >=1")

    values["block_retry_interval"] = timedelta(seconds=values["block_retry_interval"])
    return EVMConfig(general_chain_config=general, handlers=handlers, **values)