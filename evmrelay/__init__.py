"""EVM deposit decoding, proposal encoding, event handling and signing-hash helpers for a bridge relayer."""

__version__ = "0.1.0"

__all__ = [
    "abi",
    "config",
    "deposit_handlers",
    "event_handlers",
    "events",
    "message_handler",
    "proposal",
    "transfer",
]