import pytest

from evmrelay.abi import AbiError, left_pad
from evmrelay.events import (
    Deposit,
    EventSig,
    Listener,
    Log,
    Receipt,
    Refresh,
    RetryEvent,
)
from evmrelay.proposal import keccak256

TX_HASH = "0xf25ed4a14bf7ad20354b46fe38d7d4525f2ea3042db9a9954ef8d73c558b500c"
BRIDGE = bytes.fromhex("5798e01f4b1d8f6a5d91167414f3a915d021bc4a")
OTHER = bytes.fromhex("1ec6b294902d42fee964d29fa962e5976e71e67d")
SENDER = bytes.fromhex("4ceef6139f00f9f4535ad19640ff7a0137708485")

DEPOSIT_EVENT = bytes.fromhex(
    "00000000000000000000000000000000000000000000000000000000000000020000000000000000000000000000000000000000000000000000000000000300000000000000000000000000000000000000000000000000000000000000001d00000000000000000000000000000000000000000000000000000000000000a00000000000000000000000000000000000000000000000000000000000000120000000000000000000000000000000000000000000000000000000000000005600000000000000000000000000000000000000000000000000000000000f424000000000000000000000000000000000000000000000000000000000000000148e0a907331554af72563bd8d43051c2e64be5d350102000000000000000000000000000000000000000000000000000000000000000000000000000000000000"
)


def _string_data(text):
    raw = text.encode()
    return (32).to_bytes(32, "big") + len(raw).to_bytes(32, "big") + raw + bytes(-len(raw) % 32)


class FakeClient:
    def __init__(self, receipt=None, latest=0, logs=None, receipt_error=None):
        self.receipt = receipt
        self.latest = latest
        self.logs = logs or []
        self.receipt_error = receipt_error
        self.requested_hashes = []
        self.log_requests = []

    def wait_and_return_tx_receipt(self, tx_hash):
        self.requested_hashes.append(tx_hash)
        if self.receipt_error is not None:
            raise self.receipt_error
        return self.receipt

    def latest_block(self):
        return self.latest

    def fetch_event_logs(self, contract_address, event, start_block, end_block):
        self.log_requests.append((contract_address, event, start_block, end_block))
        return self.logs


def test_fetch_retry_deposit_events_fetching_tx_fails():
    client = FakeClient(receipt_error=ConnectionError("error"))
    listener = Listener(client)
    with pytest.raises(RuntimeError, match="unable to fetch logs for retried deposit"):
        listener.fetch_retry_deposit_events(RetryEvent(tx_hash=TX_HASH), bytes(20), 5)
    assert client.requested_hashes == [bytes.fromhex(TX_HASH[2:])]


def test_fetch_retry_deposit_events_event_too_new():
    client = FakeClient(receipt=Receipt(block_number=14), latest=10)
    with pytest.raises(RuntimeError):
        Listener(client).fetch_retry_deposit_events(RetryEvent(tx_hash=TX_HASH), BRIDGE, 5)


def test_fetch_retry_deposit_events_no_deposit_event():
    client = FakeClient(receipt=Receipt(block_number=14), latest=20)
    deposits = Listener(client).fetch_retry_deposit_events(RetryEvent(tx_hash=TX_HASH), BRIDGE, 5)
    assert deposits == []


def test_fetch_retry_deposit_events_no_matching_event():
    receipt = Receipt(
        block_number=14,
        logs=[Log(address=OTHER, data=b""), Log(address=BRIDGE, data=b"")],
    )
    client = FakeClient(receipt=receipt, latest=20)
    deposits = Listener(client).fetch_retry_deposit_events(RetryEvent(tx_hash=TX_HASH), BRIDGE, 5)
    assert deposits == []


def test_fetch_retry_deposit_events_valid_event():
    receipt = Receipt(
        block_number=14,
        logs=[Log(address=OTHER, data=DEPOSIT_EVENT), Log(address=BRIDGE, data=DEPOSIT_EVENT)],
    )
    client = FakeClient(receipt=receipt, latest=20)
    deposits = Listener(client).fetch_retry_deposit_events(
        RetryEvent(tx_hash=TX_HASH), "0x5798e01f4b1d8f6a5d91167414f3a915d021bc4a", 5
    )
    assert len(deposits) == 1
    assert deposits[0].destination_domain_id == 2


def test_fetch_deposits_sets_sender_from_topic():
    logs = [
        Log(address=BRIDGE, topics=[EventSig.DEPOSIT.topic(), left_pad(SENDER, 32)], data=DEPOSIT_EVENT),
        Log(address=BRIDGE, topics=[EventSig.DEPOSIT.topic(), left_pad(SENDER, 32)], data=b""),
    ]
    client = FakeClient(logs=logs)
    deposits = Listener(client).fetch_deposits(BRIDGE, 1, 10)
    assert len(deposits) == 1
    assert deposits[0].sender_address == SENDER
    assert deposits[0].destination_domain_id == 2
    assert client.log_requests == [
        (BRIDGE, "Deposit(uint8,bytes32,uint64,address,bytes,bytes)", 1, 10)
    ]


def test_fetch_retry_events_decodes_and_skips_bad_logs():
    client = FakeClient(logs=[Log(data=_string_data(TX_HASH)), Log(data=b"\x01")])
    events = Listener(client).fetch_retry_events(BRIDGE, 0, 5)
    assert events == [RetryEvent(tx_hash=TX_HASH)]
    assert client.log_requests[0][1] == "Retry(string)"


def test_fetch_refresh_events():
    client = FakeClient(logs=[Log(data=_string_data("topology-hash")), Log(data=b"")])
    events = Listener(client).fetch_refresh_events(BRIDGE, 0, 5)
    assert events == [Refresh(hash="topology-hash")]
    assert client.log_requests[0][1] == "KeyRefresh(string)"


def test_fetch_keygen_events_returns_logs():
    logs = [Log(block_number=7)]
    client = FakeClient(logs=logs)
    listener = Listener(client)
    assert listener.fetch_keygen_events(BRIDGE, 0, 5) == logs
    assert listener.fetch_frost_keygen_events(BRIDGE, 0, 5) == logs
    assert [request[1] for request in client.log_requests] == [
        "StartKeygen()",
        "StartedFROSTKeygen()",
    ]


def test_unpack_refresh_bad_data_raises():
    with pytest.raises(AbiError):
        Listener(FakeClient()).unpack_refresh(b"")


def test_event_topics_are_keccak_of_signature():
    topics = [EventSig(signature).topic() for signature in (sig.value for sig in EventSig)]
    assert len(set(topics)) == len(EventSig)
    for sig, topic in zip(EventSig, topics):
        assert topic == keccak256(sig.value.encode())
        assert len(topic) == 32


def test_event_sig_lookup_by_signature():
    assert EventSig("Retry(string)") is EventSig.RETRY


def test_deposit_defaults_compare_equal():
    assert Deposit(deposit_nonce=1) == Deposit(deposit_nonce=1)
    assert (Deposit(deposit_nonce=1) == Deposit(deposit_nonce=2)) is False