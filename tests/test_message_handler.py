import pytest

from evmrelay.message_handler import (
    MessageHandlerError,
    TransferMessageHandler,
    erc20_message_handler,
    generic_message_handler,
)
from evmrelay.transfer import (
    TRANSFER_MESSAGE_TYPE,
    TRANSFER_PROPOSAL_TYPE,
    Message,
    Proposal,
    TransferMessageData,
    TransferProposalData,
    TransferType,
)

RECIPIENT = bytes(
    [241, 229, 143, 177, 119, 4, 194, 218, 132, 121, 165, 51, 249, 250, 212, 173, 9, 147, 202, 107]
)
ERC1155_RECIPIENT = bytes(
    [28, 58, 3, 208, 76, 2, 107, 31, 75, 66, 8, 210, 206, 5, 60, 86, 134, 230, 251, 141]
)


def word(value):
    return value.to_bytes(32, "big")


def make_message(payload, transfer_type, message_id=""):
    return Message(
        source=1,
        destination=0,
        data=TransferMessageData(
            deposit_nonce=1,
            resource_id=bytes(32),
            payload=payload,
            type=transfer_type,
        ),
        id=message_id,
        type=TRANSFER_MESSAGE_TYPE,
    )


def handle(payload, transfer_type):
    return TransferMessageHandler().handle_message(make_message(payload, transfer_type))


# ERC20

def test_erc20_handle_message():
    prop = handle([b"\x02", RECIPIENT], TransferType.FUNGIBLE)
    assert prop.source == 1
    assert prop.destination == 0
    assert prop.type == TRANSFER_PROPOSAL_TYPE
    assert prop.transfer_data().deposit_nonce == 1
    assert prop.transfer_data().data == bytes(31) + b"\x02" + bytes(31) + b"\x14" + RECIPIENT


def test_erc20_handle_message_with_optional_message():
    prop = handle([b"\x02", RECIPIENT, b"optionalMessage"], TransferType.FUNGIBLE)
    expected = bytes(31) + b"\x02" + bytes(31) + b"\x14" + RECIPIENT + b"optionalMessage"
    assert prop.transfer_data().data == expected


def test_erc20_incorrect_data_len():
    with pytest.raises(MessageHandlerError, match="^wrong payload length 1$"):
        handle([b"\x02"], TransferType.FUNGIBLE)


def test_erc20_incorrect_amount():
    with pytest.raises(MessageHandlerError, match="^wrong payload amount format$"):
        handle(["incorrectAmount", RECIPIENT], TransferType.FUNGIBLE)


def test_erc20_incorrect_recipient():
    with pytest.raises(MessageHandlerError, match="^wrong payload recipient format$"):
        handle([b"\x02", "incorrectRecipient"], TransferType.FUNGIBLE)


def test_erc20_incorrect_optional_message():
    with pytest.raises(MessageHandlerError, match="^wrong optional message format$"):
        erc20_message_handler(make_message([b"\x02", RECIPIENT, 5], TransferType.FUNGIBLE))


# ERC721

def test_erc721_empty_metadata():
    prop = handle([b"\x02", RECIPIENT, b""], TransferType.NON_FUNGIBLE)
    expected = bytes(31) + b"\x02" + bytes(31) + b"\x14" + RECIPIENT + bytes(32)
    assert prop.transfer_data().data == expected


def test_erc721_with_metadata():
    prop = handle([b"\x02", RECIPIENT, b"abc"], TransferType.NON_FUNGIBLE)
    expected = bytes(31) + b"\x02" + bytes(31) + b"\x14" + RECIPIENT + bytes(31) + b"\x03abc"
    assert prop.transfer_data().data == expected


def test_erc721_incorrect_data_len():
    with pytest.raises(MessageHandlerError, match="Len  of payload should be 3"):
        handle([b"\x02"], TransferType.NON_FUNGIBLE)


def test_erc721_incorrect_token_id():
    with pytest.raises(MessageHandlerError, match="^wrong payload tokenID format$"):
        handle(["incorrectAmount", RECIPIENT, b""], TransferType.NON_FUNGIBLE)


def test_erc721_incorrect_recipient():
    with pytest.raises(MessageHandlerError, match="^wrong payload recipient format$"):
        handle([b"\x02", "incorrectRecipient", b""], TransferType.NON_FUNGIBLE)


def test_erc721_incorrect_metadata():
    with pytest.raises(MessageHandlerError, match="^wrong payload metadata format$"):
        handle([b"\x02", RECIPIENT, "incorrectMetadata"], TransferType.NON_FUNGIBLE)


# Generic

def test_generic_handle_event():
    prop = handle([b""], TransferType.PERMISSIONED_GENERIC)
    assert prop.transfer_data().data == bytes(32)


def test_generic_handle_event_with_metadata():
    prop = generic_message_handler(make_message([b"0xdeadbeef"], TransferType.PERMISSIONED_GENERIC))
    assert prop.transfer_data().data == bytes(31) + b"\x0a" + b"0xdeadbeef"


def test_generic_incorrect_data_len():
    with pytest.raises(MessageHandlerError, match="Len  of payload should be 1"):
        handle([], TransferType.PERMISSIONED_GENERIC)


def test_generic_incorrect_metadata():
    with pytest.raises(MessageHandlerError, match="^wrong payload metadata format$"):
        handle(["incorrectMetadata"], TransferType.PERMISSIONED_GENERIC)


# Permissionless

def test_permissionless_handle_message():
    contract_address = bytes.fromhex("02091EefF969b33A5CE8A729DaE325879bf76f90")
    depositor = bytes.fromhex("5C1F5961696BaD2e73f73417f07EF55C62a2dC5b")
    max_fee = bytes(29) + bytes.fromhex("030d40")
    msg = make_message(
        [b"", contract_address, max_fee, depositor, b"0xhash"],
        TransferType.PERMISSIONLESS_GENERIC,
        message_id="messageID",
    )

    prop = TransferMessageHandler().handle_message(msg)

    expected_data = bytes.fromhex(
        "0000000000000000000000000000000000000000000000000000000000030d40"
        "00001402091eeff969b33a5ce8a729dae325879bf76f90"
        "145c1f5961696bad2e73f73417f07ef55c62a2dc5b307868617368"
    )
    assert prop == Proposal(
        source=1,
        destination=0,
        data=TransferProposalData(
            deposit_nonce=1, resource_id=bytes(32), metadata=None, data=expected_data
        ),
        message_id="messageID",
        type=TRANSFER_PROPOSAL_TYPE,
    )


def test_permissionless_wrong_depositor():
    with pytest.raises(MessageHandlerError, match="^wrong depositor data format$"):
        handle([b"", b"\x01", b"\x02", "depositor", b""], TransferType.PERMISSIONLESS_GENERIC)


# ERC1155

def test_erc1155_handle_message():
    prop = handle([[2], [3], ERC1155_RECIPIENT, b""], TransferType.SEMI_FUNGIBLE)
    expected = b"".join(
        [
            word(0x80), word(0xC0), word(0x100), word(0x140),
            word(1), word(2),
            word(1), word(3),
            word(20), ERC1155_RECIPIENT + bytes(12),
            word(0),
        ]
    )
    assert prop.transfer_data().data == expected


def test_erc1155_invalid_payload_len():
    with pytest.raises(MessageHandlerError, match="Len  of payload should be 4"):
        handle([[2], [3], ERC1155_RECIPIENT], TransferType.SEMI_FUNGIBLE)


def test_erc1155_invalid_token_ids():
    with pytest.raises(MessageHandlerError, match="^wrong payload tokenID format$"):
        handle([2, [3], ERC1155_RECIPIENT, b""], TransferType.SEMI_FUNGIBLE)


def test_erc1155_invalid_amounts():
    with pytest.raises(MessageHandlerError, match="^wrong payload amount format$"):
        handle([[2], 3, ERC1155_RECIPIENT, b""], TransferType.SEMI_FUNGIBLE)


def test_erc1155_invalid_recipient():
    with pytest.raises(MessageHandlerError, match="^wrong payload recipient format$"):
        handle([[2], [3], "invalidRecipient", b""], TransferType.SEMI_FUNGIBLE)


def test_erc1155_invalid_recipient_len():
    with pytest.raises(MessageHandlerError, match="Len  of recipient should be 20"):
        handle([[2], [3], ERC1155_RECIPIENT[:19], b""], TransferType.SEMI_FUNGIBLE)


def test_erc1155_invalid_transfer_data():
    with pytest.raises(MessageHandlerError, match="^wrong payload transferData format$"):
        handle([[2], [3], ERC1155_RECIPIENT, "invalidTransferData"], TransferType.SEMI_FUNGIBLE)


def test_unknown_transfer_type():
    with pytest.raises(MessageHandlerError, match="wrong message type"):
        handle([b""], None)