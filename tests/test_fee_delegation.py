import pytest
import rlp

from klaytx.errors import AddressMismatchError, InvalidFieldError, MissingFieldError
from klaytx.hasher import get_hash_for_fee_payer_signature
from klaytx.keys import Keyring
from klaytx.model import FeeDelegatedSmartContractExecution, FeeDelegatedValueTransferWithRatio
from klaytx.signature import EMPTY_SIGNATURE, SignatureData
from klaytx.tx_types import RoleGroup
from klaytx.utils import hex_to_bytes

from conftest import CHAIN_ID, FEE_PAYER_ADDRESS, OTHER_KEYS, SENDER_ADDRESS, TO_ADDRESS, FakeClient, key_address, \
    recover_address

CALL_DATA = '0xa9059cbb' + '00' * 64
FEE_PAYER_SIG = SignatureData('0x4e44', '0x' + '5e' * 32, '0x' + '6f' * 32)


def execution(**overrides):
    fields = dict(from_=SENDER_ADDRESS, to=TO_ADDRESS, gas='0x30d40', nonce='0x2', gas_price='0x5d21dba00',
                  chain_id=CHAIN_ID, input=CALL_DATA)
    fields.update(overrides)
    return FeeDelegatedSmartContractExecution(**fields)


def test_raw_encoding_layout():
    tx = execution(fee_payer=FEE_PAYER_ADDRESS, fee_payer_signatures=[FEE_PAYER_SIG])
    raw = hex_to_bytes(tx.get_rlp_encoding())
    assert raw[0] == 0x31
    values = rlp.decode(raw[1:])
    assert len(values) == 10
    assert values[3] == hex_to_bytes(TO_ADDRESS)
    assert values[7] == [EMPTY_SIGNATURE.encode()]
    assert values[8] == hex_to_bytes(FEE_PAYER_ADDRESS)
    assert values[9] == [FEE_PAYER_SIG.encode()]


def test_unset_fee_payer_is_encoded_empty():
    values = rlp.decode(hex_to_bytes(execution().get_rlp_encoding())[1:])
    assert values[8] == b''


def test_fee_payer_payload_layout():
    tx = execution(fee_payer=FEE_PAYER_ADDRESS)
    payload = rlp.decode(hex_to_bytes(tx.get_rlp_encoding_for_fee_payer_signature()))
    assert payload[0] == tx.get_common_rlp_encoding_for_signature()
    assert payload[1] == hex_to_bytes(FEE_PAYER_ADDRESS)
    assert payload[2:] == [b'\x27\x10', b'', b'']


def test_fee_payer_payload_requires_fee_payer():
    with pytest.raises(MissingFieldError) as e:
        execution().get_rlp_encoding_for_fee_payer_signature()
    assert e.value.name == 'fee_payer'


def test_sender_payload_ignores_fee_payer():
    assert execution().get_rlp_encoding_for_signature() == \
        execution(fee_payer=FEE_PAYER_ADDRESS).get_rlp_encoding_for_signature()


def test_sender_tx_hash_ignores_fee_payer_data(sender_keyring):
    tx = execution().sign_with_key(sender_keyring)
    sender_hash = tx.get_sender_tx_hash()
    tx.fee_payer = FEE_PAYER_ADDRESS
    tx.append_fee_payer_signatures(FEE_PAYER_SIG)
    assert tx.get_sender_tx_hash() == sender_hash
    assert tx.get_transaction_hash() != sender_hash


def test_sender_tx_hash_changes_with_sender_signatures(sender_keyring):
    tx = execution()
    unsigned_hash = tx.get_sender_tx_hash()
    tx.sign_with_key(sender_keyring)
    assert tx.get_sender_tx_hash() != unsigned_hash


def test_sign_as_fee_payer_adopts_address(fee_payer_keyring):
    tx = execution().sign_as_fee_payer(fee_payer_keyring)
    assert tx.fee_payer == key_address(OTHER_KEYS[2])
    assert tx.signatures == []
    assert len(tx.fee_payer_signatures) == 1
    signature = tx.fee_payer_signatures[0]
    assert recover_address(get_hash_for_fee_payer_signature(tx), signature) == tx.fee_payer


def test_sign_as_fee_payer_rejects_other_address(fee_payer_keyring):
    tx = execution(fee_payer=FEE_PAYER_ADDRESS)
    with pytest.raises(AddressMismatchError):
        tx.sign_as_fee_payer(fee_payer_keyring)
    assert tx.fee_payer_signatures == []


def test_sign_as_fee_payer_uses_fee_payer_role():
    keyring = Keyring.from_role_based_keys(FEE_PAYER_ADDRESS, [[OTHER_KEYS[0]], [], OTHER_KEYS[1:]])
    tx = execution().sign_as_fee_payer_with_keys(keyring)
    digest = get_hash_for_fee_payer_signature(tx)
    assert [recover_address(digest, sig) for sig in tx.fee_payer_signatures] == \
        [key_address(key) for key in OTHER_KEYS[1:]]


def test_sign_as_fee_payer_fills_missing_values(fee_payer_keyring):
    client = FakeClient()
    tx = execution(nonce=None, gas_price=None, chain_id=None, client=client)
    tx.sign_as_fee_payer(fee_payer_keyring)
    assert (tx.nonce, tx.gas_price, tx.chain_id) == ('0x3', '0x5d21dba00', CHAIN_ID)


def test_sign_as_fee_payer_with_recorded_role():
    class RecordingKeyring:
        address = FEE_PAYER_ADDRESS

        def __init__(self):
            self.roles = []

        def sign(self, tx_hash, chain_id, role, index=0):
            self.roles.append(role)
            return FEE_PAYER_SIG

    keyring = RecordingKeyring()
    execution().sign_as_fee_payer(keyring)
    assert keyring.roles == [RoleGroup.FEE_PAYER]


def test_decode_keeps_both_signature_lists(sender_keyring, fee_payer_keyring):
    tx = execution().sign_with_key(sender_keyring).sign_as_fee_payer(fee_payer_keyring)
    decoded = FeeDelegatedSmartContractExecution.decode(tx.get_rlp_encoding())
    assert decoded == tx
    assert decoded.fee_payer == tx.fee_payer
    assert decoded.get_sender_tx_hash() == tx.get_sender_tx_hash()


def test_equality_covers_fee_payer_data():
    assert execution(fee_payer=FEE_PAYER_ADDRESS) != execution()
    assert execution(fee_payer_signatures=[FEE_PAYER_SIG]) != execution()


@pytest.mark.parametrize('ratio', [0, 100, -1, '0x64'])
def test_fee_ratio_out_of_range(ratio):
    with pytest.raises(InvalidFieldError):
        FeeDelegatedValueTransferWithRatio(from_=SENDER_ADDRESS, to=TO_ADDRESS, value=1, gas=21000, fee_ratio=ratio)


def test_fee_ratio_follows_kind_fields():
    tx = FeeDelegatedValueTransferWithRatio(from_=SENDER_ADDRESS, to=TO_ADDRESS, value=1, gas=21000, nonce=0,
                                            gas_price=1, fee_ratio=30)
    values = rlp.decode(hex_to_bytes(tx.get_rlp_encoding())[1:])
    assert values[5] == hex_to_bytes(SENDER_ADDRESS)
    assert values[6] == b'\x1e'
    assert len(values) == 10
