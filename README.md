# evmrelay

Building blocks for the EVM side of a cross-chain bridge relayer, as a plain
Python library. It covers:

- ABI encoding and decoding of bridge payloads and event data
  (`evmrelay.abi`: `encode_erc1155`, `decode_erc1155`, `decode_deposit_data`,
  `decode_string_data`, `left_pad`);
- transfer messages and proposals (`evmrelay.transfer`: `Message`,
  `Proposal`, `TransferMessageData`, `TransferProposalData`, `TransferType`);
- reading `Deposit`, `Retry`, `KeyRefresh` and keygen events through a chain
  client you supply (`evmrelay.events.Listener`), plus the event signatures
  and their log topics (`evmrelay.events.EventSig`);
- turning deposit calldata into transfer messages, one handler per transfer
  kind: ERC20, ERC721, ERC1155, permissioned generic and permissionless
  generic, and a router that picks the handler by contract address
  (`evmrelay.deposit_handlers`);
- turning transfer messages into proposal calldata for the destination bridge
  (`evmrelay.message_handler.TransferMessageHandler`);
- the Keccak-256 EIP-712 digest that relayers sign over a batch of proposals
  (`evmrelay.proposal.proposals_hash`);
- decoding, defaulting and validating EVM chain configuration
  (`evmrelay.config.new_evm_config`);
- event handlers that collect deposits and retries for a block range and put
  the resulting messages on a `queue.Queue`, one list per destination domain
  (`evmrelay.event_handlers`).

## Installation

```
pip install .
```

With the test requirements:

```
pip install ".[test]"
```

## Examples

Decode an ERC20 deposit:

```python
from evmrelay.deposit_handlers import Erc20DepositHandler

handler = Erc20DepositHandler()
message = handler.handle_deposit(
    source_id=1,
    dest_id=2,
    nonce=1,
    resource_id=bytes(32),
    calldata=calldata,
    handler_response=b"",
    message_id="1-2-0-5",
)
amount, recipient = message.transfer_data().payload[:2]
```

When the calldata carries an optional message after the recipient, its first
32 bytes are read as a gas limit into `metadata["gasLimit"]` and the whole
message is added to the payload.

Route deposits by handler address:

```python
from evmrelay.deposit_handlers import ETHDepositHandler, GenericDepositHandler

router = ETHDepositHandler(handler_matcher)
router.register_deposit_handler("0x02091EefF969b33A5CE8A729DaE325879bf76f90",
                                GenericDepositHandler())
message = router.handle_deposit(1, 2, 7, resource_id, calldata, b"", "msg-id")
```

`handler_matcher` is any object with a
`get_handler_address_for_resource_id(resource_id)` method returning the
handler's address as a hex string or bytes.

Build a proposal from a message and hash it for signing:

```python
from evmrelay.message_handler import TransferMessageHandler
from evmrelay.proposal import proposals_hash

proposal = TransferMessageHandler().handle_message(message)
digest = proposals_hash([proposal], 5, "0x6CdE2Cd82a4F8B74693Ff5e194c19CA08c2d1c68", "3.1.0")
```

Load a chain configuration:

```python
from evmrelay.config import new_evm_config

config = new_evm_config({
    "id": 1,
    "name": "evm1",
    "endpoint": "ws://localhost:8545",
    "bridge": "0x6CdE2Cd82a4F8B74693Ff5e194c19CA08c2d1c68",
})
assert config.block_confirmations == 10
```

Keys are matched case-insensitively. A missing or zero value takes its
default (for example `gasLimit` 15000000, `transferGas` 250000,
`blockConfirmations` 10, `blockRetryInterval` 5 seconds).

Collect deposits for a block range:

```python
import queue
from evmrelay.event_handlers import DepositEventHandler
from evmrelay.events import Listener

messages = queue.Queue()
handler = DepositEventHandler(Listener(client), router, bridge_address, 1, messages)
handler.handle_events(100, 105)
batch = messages.get()
```

`client` is any object with `fetch_event_logs`, `wait_and_return_tx_receipt`
and `latest_block` methods. Deposits that fail to decode are logged and
skipped. `RetryEventHandler` works the same way for `Retry` events, skipping
deposits whose proposal is recorded as executed and marking pending ones as
failed through the `prop_storer` you pass in.

## Errors

- `AbiError` – data that cannot be ABI encoded or decoded.
- `DepositHandlerError` – deposit calldata that is too short or malformed, or
  no handler registered for an address.
- `MessageHandlerError` – a message payload of the wrong length or shape, or
  an unknown transfer type.
- `ConfigError` – a configuration value of the wrong type or out of range, or
  a missing required field.
- `EventFetchError` – the event listener failed to fetch events.
- `Listener.fetch_retry_deposit_events` raises `RuntimeError` when the
  receipt cannot be fetched or the transaction is not yet confirmed.

## What this package does not do

There is no network code: chain access, proposal-status storage and
handler-address lookup all come from objects you pass in. The package does not
run key generation or key-refresh ceremonies, does not sign or submit
transactions, keeps no state on disk, and has no command-line program.

## Running the tests

```
pytest
```