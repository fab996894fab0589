import json

import pytest
from eth_account import Account

from klaytx.keys import Keyring, chain_id_from_v, recovery_id_from_v, to_klay_v
from klaytx.tx_types import RoleGroup

from conftest import MULTISIG_ADDRESS, OTHER_KEYS, SENDER_ADDRESS, SENDER_KEY, key_address, recover_address

DIGEST = '0x' + '5a' * 32


def test_from_private_key_derives_address():
    keyring = Keyring.from_private_key(SENDER_KEY)
    assert keyring.address == SENDER_ADDRESS
    assert not keyring.is_decoupled()
    assert keyring.keys_for_role(RoleGroup.FEE_PAYER) == [SENDER_KEY]


def test_from_private_key_with_other_address_is_decoupled():
    keyring = Keyring.from_private_key(SENDER_KEY, MULTISIG_ADDRESS)
    assert keyring.address == MULTISIG_ADDRESS
    assert keyring.is_decoupled()


def test_several_keys_are_decoupled():
    assert Keyring.from_keys(SENDER_ADDRESS, [SENDER_KEY, OTHER_KEYS[0]]).is_decoupled()


def test_role_based_keys_fall_back_to_transaction_keys():
    keyring = Keyring.from_role_based_keys(MULTISIG_ADDRESS, [[OTHER_KEYS[0]], [], [OTHER_KEYS[2]]])
    assert keyring.keys_for_role(RoleGroup.ACCOUNT_UPDATE) == [OTHER_KEYS[0]]
    assert keyring.keys_for_role(RoleGroup.FEE_PAYER) == [OTHER_KEYS[2]]


def test_role_groups_are_required():
    with pytest.raises(ValueError):
        Keyring(SENDER_ADDRESS, [[SENDER_KEY]])


def test_sign_folds_chain_id_into_v():
    signature = Keyring.from_private_key(SENDER_KEY).sign(DIGEST, 1001, RoleGroup.TRANSACTION)
    v = int(signature.v, 16)
    assert v in (2 * 1001 + 35, 2 * 1001 + 36)
    assert recover_address(DIGEST, signature) == SENDER_ADDRESS


def test_sign_with_index():
    keyring = Keyring.from_keys(MULTISIG_ADDRESS, OTHER_KEYS)
    signature = keyring.sign(DIGEST, 1, RoleGroup.TRANSACTION, 1)
    assert recover_address(DIGEST, signature) == key_address(OTHER_KEYS[1])
    with pytest.raises(IndexError):
        keyring.sign(DIGEST, 1, RoleGroup.TRANSACTION, 3)


def test_sign_all_keeps_key_order():
    keyring = Keyring.from_keys(MULTISIG_ADDRESS, OTHER_KEYS)
    signatures = keyring.sign_all(DIGEST, 1, RoleGroup.TRANSACTION)
    assert [recover_address(DIGEST, sig) for sig in signatures] == [key_address(k) for k in OTHER_KEYS]


def test_from_keystore_file(tmp_path):
    keystore = Account.encrypt(SENDER_KEY, 'secret', kdf='pbkdf2', iterations=2)
    path = tmp_path / 'keystore.json'
    path.write_text(json.dumps(keystore))
    keyring = Keyring.from_keystore_file(str(path), 'secret')
    assert keyring.address == SENDER_ADDRESS


def test_repr_hides_keys():
    text = repr(Keyring.from_private_key(SENDER_KEY))
    assert SENDER_KEY[2:] not in text
    assert SENDER_ADDRESS in text


@pytest.mark.parametrize('v_raw, chain_id, expected', [
    (0, 1, 37),
    (1, 1, 38),
    (27, 1, 37),
    (28, 8217, 2 * 8217 + 36),
])
def test_to_klay_v(v_raw, chain_id, expected):
    assert to_klay_v(v_raw, chain_id) == expected
    assert recovery_id_from_v(expected) == v_raw % 27
    assert chain_id_from_v(expected) == chain_id


def test_pre_replay_protection_v():
    assert recovery_id_from_v(28) == 1
    assert chain_id_from_v(28) is None


def test_signatures_have_no_leading_zero_bytes():
    keyring = Keyring.from_private_key(SENDER_KEY)
    for i in range(1, 257):
        digest = '0x' + i.to_bytes(32, 'big').hex()
        signature = keyring.sign(digest, 1, RoleGroup.TRANSACTION)
        assert not signature.r.startswith('0x00')
        assert not signature.s.startswith('0x00')
        assert recover_address(digest, signature) == SENDER_ADDRESS
