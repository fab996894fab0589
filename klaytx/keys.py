import logging

from eth_account import Account

from klaytx.signature import SignatureData
from klaytx.tx_types import RoleGroup
from klaytx.utils import hex_to_bytes, normalize_address

logger = logging.getLogger(__name__)

# --- Module-level Constants ---
CHAIN_ID_OFFSET = 35  # Offset used to fold the chain id into the 'v' component (EIP-155 style replay protection).
V_OFFSET = 27  # Offset of the 'v' value returned by pre-EIP-155 signing (27 or 28).


class Keyring:
    """
    Holds an account address together with the private keys allowed to sign for it,
    grouped by role (transaction, account update, fee payer).

    A keyring is "decoupled" when its keys do not simply derive its address: it holds
    several keys, different keys per role, or a single key whose own address differs
    from the account address.
    """

    def __init__(self, address: str, role_keys: list[list[str]]):
        """
        Initializes a Keyring object.

        Args:
            address (str): The account address the keys sign for.
            role_keys (list[list[str]]): Three lists of hex private keys, indexed by RoleGroup.
        """
        if len(role_keys) != len(RoleGroup):
            raise ValueError(f'Expected {len(RoleGroup)} key groups, got {len(role_keys)}')
        self.address = normalize_address('address', address)
        self.role_keys = [list(keys) for keys in role_keys]

    @staticmethod
    def from_private_key(priv_key: str, address: str = None) -> 'Keyring':
        """
        Creates a keyring holding one private key used for every role.

        Args:
            priv_key (str): The hexadecimal private key string (e.g., '0x...').
            address (str, optional): The account address. Defaults to the key's own address.

        Returns:
            Keyring: The new keyring.
        """
        if address is None:
            address = Account.from_key(hex_to_bytes(priv_key)).address
        return Keyring(address, [[priv_key] for _ in RoleGroup])

    @staticmethod
    def from_keys(address: str, priv_keys: list[str]) -> 'Keyring':
        """
        Creates a keyring holding several private keys, all usable for every role.
        """
        return Keyring(address, [list(priv_keys) for _ in RoleGroup])

    @staticmethod
    def from_role_based_keys(address: str, role_keys: list[list[str]]) -> 'Keyring':
        """
        Creates a keyring with a distinct key list per role. An empty account-update or
        fee-payer list falls back to the transaction keys when signing.
        """
        return Keyring(address, role_keys)

    @staticmethod
    def from_keystore_file(file_name: str, pswd: str = '') -> 'Keyring':
        """
        Loads a single-key keyring from a Geth-style keystore file.

        Args:
            file_name (str): The full path to the keystore file.
            pswd (str, optional): The password for the keystore file. Defaults to an empty string.

        Returns:
            Keyring: A keyring holding the decrypted key.
        """
        with open(file_name) as keyfile:
            private_key = Account.decrypt(keyfile.read(), pswd)
        return Keyring.from_private_key('0x' + bytes(private_key).hex())

    def keys_for_role(self, role: RoleGroup) -> list[str]:
        keys = self.role_keys[role]
        if not keys and role != RoleGroup.TRANSACTION:
            keys = self.role_keys[RoleGroup.TRANSACTION]
        return keys

    def is_decoupled(self) -> bool:
        distinct = {key for keys in self.role_keys for key in keys}
        if len(distinct) != 1:
            return True
        derived = Account.from_key(hex_to_bytes(distinct.pop())).address
        return derived.lower() != self.address

    def sign(self, tx_hash: str, chain_id: int, role: RoleGroup, index: int = 0) -> SignatureData:
        """
        Signs a hash with one key of the given role.

        Args:
            tx_hash (str): The '0x'-prefixed 32-byte digest to sign.
            chain_id (int): The chain id folded into 'v'.
            role (RoleGroup): The role whose keys are used.
            index (int): The index of the key within the role. Defaults to 0.

        Returns:
            SignatureData: The signature.
        """
        keys = self.keys_for_role(role)
        if not 0 <= index < len(keys):
            raise IndexError(f'Invalid key index {index}: keyring has {len(keys)} key(s) for role {role.name}')
        logger.debug('signing %s for %s with key %d of role %s', tx_hash, self.address, index, role.name)
        return self.__sign_hash(keys[index], tx_hash, chain_id)

    def sign_all(self, tx_hash: str, chain_id: int, role: RoleGroup) -> list[SignatureData]:
        """
        Signs a hash with every key of the given role, in key order.
        """
        keys = self.keys_for_role(role)
        logger.debug('signing %s for %s with %d key(s) of role %s', tx_hash, self.address, len(keys), role.name)
        return [self.__sign_hash(key, tx_hash, chain_id) for key in keys]

    @staticmethod
    def __sign_hash(priv_key: str, tx_hash: str, chain_id: int) -> SignatureData:
        signed = Account.unsafe_sign_hash(hex_to_bytes(tx_hash), hex_to_bytes(priv_key))
        return SignatureData(to_klay_v(signed.v, chain_id), signed.r, signed.s)

    def __repr__(self) -> str:
        # Never print the keys themselves.
        counts = [len(keys) for keys in self.role_keys]
        return f'Keyring(address={self.address}, keys per role={counts})'


def to_klay_v(v_raw: int, chain_id: int) -> int:
    """
    Folds the chain id into the 'v' component of a signature.

    The signing backend returns either a bare recovery id (0 or 1) or the
    pre-EIP-155 form (27 or 28); both are reduced to the recovery id first.

    Args:
        v_raw (int): The raw 'v' value returned by the signing algorithm.
        chain_id (int): The id of the chain the signature is bound to.

    Returns:
        int: recovery_id + 35 + 2 * chain_id.
    """
    recovery_id = v_raw - V_OFFSET if v_raw >= V_OFFSET else v_raw
    return recovery_id + CHAIN_ID_OFFSET + 2 * chain_id


def recovery_id_from_v(v: int) -> int:
    """Inverse of `to_klay_v` for the recovery id."""
    if v >= CHAIN_ID_OFFSET:
        return (v - CHAIN_ID_OFFSET) % 2
    return v - V_OFFSET if v >= V_OFFSET else v


def chain_id_from_v(v: int):
    """Returns the chain id folded into 'v', or None for a pre-EIP-155 'v'."""
    if v >= CHAIN_ID_OFFSET:
        return (v - CHAIN_ID_OFFSET) // 2
    return None
