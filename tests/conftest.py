import pytest
from eth_keys import keys as eth_keys

from klaytx.keys import Keyring
from klaytx.utils import hex_to_bytes

# Well-known test key; its address is 0xa94f5374fce5edbc8e2a8697c15331677e6ebf0b.
SENDER_KEY = '0x45a915e4d060149eb4365960e6a7a45f334393093061116b197e3240065ff2d8'
SENDER_ADDRESS = '0xa94f5374fce5edbc8e2a8697c15331677e6ebf0b'

OTHER_KEYS = [
    '0x' + '11' * 32,
    '0x' + '22' * 32,
    '0x' + '33' * 32,
]

TO_ADDRESS = '0x7b65b75d204abed71587c9e519a89277766ee1d0'
MULTISIG_ADDRESS = '0x' + 'aa' * 20
RECIPIENT_ADDRESS = '0x' + 'bb' * 20
FEE_PAYER_ADDRESS = '0x' + 'cc' * 20
CHAIN_ID = '0x2710'


class FakeClient:
    """Stands in for the RPC client and records every call."""

    def __init__(self, nonce='0x3', chain_id=CHAIN_ID, gas_price='0x5d21dba00'):
        self.nonce = nonce
        self.chain_id = chain_id
        self.gas_price = gas_price
        self.calls = []

    def get_transaction_count(self, address):
        self.calls.append(('get_transaction_count', address))
        return self.nonce

    def get_chain_id(self):
        self.calls.append(('get_chain_id',))
        return self.chain_id

    def get_gas_price(self):
        self.calls.append(('get_gas_price',))
        return self.gas_price


def recover_address(message_hash: str, signature) -> str:
    """Recovers the signer of a Klaytn-style signature (v = recovery_id + 35 + 2 * chain_id)."""
    v = int(signature.v, 16)
    vrs = ((v - 35) % 2, int(signature.r, 16), int(signature.s, 16))
    public_key = eth_keys.Signature(vrs=vrs).recover_public_key_from_msg_hash(hex_to_bytes(message_hash))
    return public_key.to_address().lower()


def key_address(priv_key: str) -> str:
    return eth_keys.PrivateKey(hex_to_bytes(priv_key)).public_key.to_address().lower()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def sender_keyring():
    return Keyring.from_private_key(SENDER_KEY)


@pytest.fixture
def multisig_keyrings():
    # Two keyrings of one multi-signature account, each holding a different key.
    return [Keyring.from_keys(MULTISIG_ADDRESS, [key]) for key in OTHER_KEYS[:2]]


@pytest.fixture
def fee_payer_keyring():
    return Keyring.from_private_key(OTHER_KEYS[2])
