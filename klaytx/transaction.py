"""
Common machinery of every transaction kind: field validation, RLP encoding and
decoding, hashing, filling from the network, signing and signature merging.

Concrete kinds live in `klaytx.model`; each one only declares its type tag, its
payload fields and the order in which they go on the wire.
"""
import logging
from typing import Callable, Iterable, Union

import rlp
from eth_hash.auto import keccak
from rlp.sedes import Binary, big_endian_int, binary, boolean

from klaytx.errors import (
    AddressMismatchError,
    CannotFillError,
    IncompatibleKeyTypeError,
    InconsistentTransactionError,
    InvalidFieldError,
    MalformedEncodingError,
    MissingFieldError,
    UnknownOrMismatchedTagError,
    ValidationError,
)
from klaytx.hasher import get_hash_for_fee_payer_signature, get_hash_for_signature
from klaytx.keys import Keyring
from klaytx.signature import SignatureData
from klaytx.tx_types import RoleGroup, TransactionType
from klaytx.utils import (
    ADDRESS_LENGTH,
    ZERO_ADDRESS,
    bytes_to_hex,
    hex_to_bytes,
    normalize_address,
    normalize_data,
    normalize_number,
    number_to_int,
)

logger = logging.getLogger(__name__)

Hasher = Callable[['Transaction'], str]


class Field:
    """
    A validated transaction attribute. Assigning to it normalises the value or raises
    InvalidFieldError straight away, so a transaction never holds a malformed field.

    Each field also knows how to turn its value into an RLP item and back.
    """

    def __init__(self, optional: bool = False, allowed: tuple = None, reason: str = ''):
        self.optional = optional
        self.allowed = allowed
        self.reason = reason
        self.name = None

    def __set_name__(self, owner, name):
        self.name = name

    @property
    def label(self) -> str:
        return self.name.rstrip('_')

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return obj.__dict__.get(self.name)

    def __set__(self, obj, value):
        value = self.normalize(value)
        if self.allowed is not None and value not in self.allowed:
            raise InvalidFieldError(self.label, value, self.reason)
        obj.__dict__[self.name] = value

    def normalize(self, value):
        raise NotImplementedError

    def serialize(self, value):
        raise NotImplementedError

    def deserialize(self, item):
        raise NotImplementedError


class NumberField(Field):

    def normalize(self, value):
        return normalize_number(self.label, value, self.optional)

    def serialize(self, value):
        if value is None:
            raise MissingFieldError(self.label)
        return number_to_int(value)

    def deserialize(self, item):
        return big_endian_int.deserialize(item)


class FeeRatioField(NumberField):
    """The share of the fee, in percent, paid by the fee payer. Must be in [1, 99]."""

    def normalize(self, value):
        value = super().normalize(value)
        if not 1 <= number_to_int(value) <= 99:
            raise InvalidFieldError(self.label, value, 'fee ratio must be between 1 and 99')
        return value


class AddressField(Field):

    def normalize(self, value):
        return normalize_address(self.label, value, self.optional)

    def serialize(self, value):
        # An unset address goes on the wire as an empty string.
        if value is None:
            return b''
        return hex_to_bytes(value)

    def deserialize(self, item):
        value = Binary.fixed_length(ADDRESS_LENGTH, allow_empty=self.optional).deserialize(item)
        return bytes_to_hex(value) if value else None


class DataField(Field):

    def normalize(self, value):
        if value is None:
            raise InvalidFieldError(self.label, value, f'{self.label} is missing')
        return normalize_data(self.label, value)

    def serialize(self, value):
        return hex_to_bytes(value)

    def deserialize(self, item):
        return bytes_to_hex(binary.deserialize(item))


class FlagField(Field):

    def normalize(self, value):
        if not isinstance(value, bool):
            raise InvalidFieldError(self.label, value, 'expected a boolean')
        return value

    def serialize(self, value):
        return boolean.serialize(value)

    def deserialize(self, item):
        return boolean.deserialize(item)


class Transaction:
    """
    Base class of every transaction kind.

    Subclasses set `TYPE` and `RLP_FIELDS`, the attribute names of the sender-side
    fields in wire order. Signatures are kept in an ordered list that only grows:
    signing and merging append to it, and the order matches the key index order
    the network verifies against.
    """

    TYPE: TransactionType = None
    RLP_FIELDS: tuple = ()
    # Number of RLP items following the type-specific fields in the raw encoding.
    TAIL_LENGTH = 1

    from_ = AddressField(optional=True)
    nonce = NumberField(optional=True)
    gas = NumberField()
    gas_price = NumberField(optional=True)
    chain_id = NumberField(optional=True)

    def __init__(self, *, gas, from_=None, nonce=None, gas_price=None, chain_id=None,
                 signatures: Iterable[SignatureData] = None, client=None):
        """
        Initializes the fields shared by all transactions.

        Args:
            gas: The maximum amount of gas the transaction is allowed to use.
            from_ (str, optional): The sender address. Adopted from the keyring on signing when unset.
            nonce (optional): The sender's transaction count. Filled from `client` when unset.
            gas_price (optional): The unit price of gas. Filled from `client` when unset.
            chain_id (optional): The network id. Filled from `client` when unset.
            signatures (Iterable[SignatureData], optional): Sender signatures, in key order.
            client (optional): An RPC client with `get_transaction_count`, `get_chain_id` and
                               `get_gas_price`, used by `fill()`.
        """
        self.client = client
        self.from_ = from_
        self.nonce = nonce
        self.gas = gas
        self.gas_price = gas_price
        self.chain_id = chain_id
        self.signatures = []
        if signatures:
            self.append_signatures(signatures)

    @property
    def type(self) -> TransactionType:
        return self.TYPE

    @property
    def tag(self) -> int:
        return self.TYPE.tag

    @classmethod
    def _field_names(cls) -> tuple:
        return cls.RLP_FIELDS

    @classmethod
    def _field(cls, name: str) -> Field:
        return getattr(cls, name)

    def _encode_fields(self) -> list:
        return [self._field(name).serialize(getattr(self, name)) for name in self._field_names()]

    # --- Encoding ---

    def get_rlp_encoding(self) -> str:
        """
        Returns the raw transaction: type tag followed by the RLP list of the fields
        and the sender signatures. This is what gets broadcast and hashed.

        Returns:
            str: The '0x'-prefixed raw transaction.
        """
        self.validate_optional_values()
        encoded = rlp.encode(self._encode_fields() + [SignatureData.encode_list(self.signatures)])
        return bytes_to_hex(bytes([self.tag]) + encoded)

    def get_raw_transaction(self) -> str:
        return self.get_rlp_encoding()

    def get_common_rlp_encoding_for_signature(self) -> bytes:
        """RLP([type_tag, field...]), the part of every signing payload that describes the transaction."""
        self.validate_optional_values()
        return rlp.encode([self.tag] + self._encode_fields())

    def get_rlp_encoding_for_signature(self) -> str:
        """
        Returns the payload a sender signs: RLP([RLP([type_tag, field...]), chainId, 0, 0]).

        Raises:
            MissingFieldError: If nonce, gas price or chain id is unset, checked in that order.
        """
        self.validate_optional_values(check_chain_id=True)
        encoded = rlp.encode([self.get_common_rlp_encoding_for_signature(), number_to_int(self.chain_id), 0, 0])
        return bytes_to_hex(encoded)

    def get_transaction_hash(self) -> str:
        return bytes_to_hex(keccak(hex_to_bytes(self.get_rlp_encoding())))

    def get_sender_tx_hash(self) -> str:
        """
        Returns the hash identifying the transaction by its sender-side content only.
        Without fee delegation this is the transaction hash.
        """
        return self.get_transaction_hash()

    def validate_optional_values(self, check_chain_id: bool = False):
        """
        Checks the fields that may be left to `fill()` are set by now.

        Args:
            check_chain_id (bool): Whether the chain id is required as well (signing payloads need it).

        Raises:
            MissingFieldError: Naming the first missing field, in the order nonce, gas_price, chain_id.
        """
        if self.nonce is None:
            raise MissingFieldError('nonce')
        if self.gas_price is None:
            raise MissingFieldError('gas_price')
        if check_chain_id and self.chain_id is None:
            raise MissingFieldError('chain_id')

    # --- Decoding ---

    @classmethod
    def decode(cls, rlp_encoded: Union[str, bytes]) -> 'Transaction':
        """
        Decodes a raw transaction of this kind.

        Args:
            rlp_encoded (Union[str, bytes]): The raw transaction as a hex string or bytes.

        Returns:
            Transaction: A fully populated instance of `cls`.

        Raises:
            UnknownOrMismatchedTagError: If the leading byte is not this kind's tag.
            MalformedEncodingError: If the RLP body does not match this kind's layout.
        """
        raw = to_raw_bytes(rlp_encoded)
        if raw[0] != cls.TYPE.tag:
            raise UnknownOrMismatchedTagError(f'Invalid RLP-encoded tag - {cls.TYPE}: got {raw[0]:#04x}')
        return cls._decode_body(raw[1:])

    @classmethod
    def _decode_body(cls, body: bytes) -> 'Transaction':
        try:
            return cls._from_rlp_values(rlp.decode(body))
        except (rlp.DecodingError, rlp.DeserializationError) as e:
            raise MalformedEncodingError(f'Malformed {cls.TYPE}: {e}') from e
        except ValidationError as e:
            raise MalformedEncodingError(f'Malformed {cls.TYPE}: {e}') from e

    @classmethod
    def _from_rlp_values(cls, values) -> 'Transaction':
        names = cls._field_names()
        if not isinstance(values, list) or len(values) != len(names) + cls.TAIL_LENGTH:
            raise MalformedEncodingError(f'Malformed {cls.TYPE}: expected {len(names) + cls.TAIL_LENGTH} items')
        kwargs = {name: cls._field(name).deserialize(item) for name, item in zip(names, values)}
        kwargs.update(cls._decode_tail(values[len(names):]))
        return cls(**kwargs)

    @classmethod
    def _decode_tail(cls, tail: list) -> dict:
        return {'signatures': SignatureData.decode_list(tail[0])}

    # --- Filling ---

    def fill(self):
        """
        Fills nonce, chain id and gas price from `client` where they are still unset.
        Values set by the caller are never overwritten.

        Raises:
            CannotFillError: If any of the three is still unset afterwards.
        """
        self._fill_from_client()
        missing = [name for name in ('nonce', 'chain_id', 'gas_price') if getattr(self, name) is None]
        if missing:
            raise CannotFillError(
                f"Cannot fill transaction data ({', '.join(missing)}). `client` must be set in the "
                f"transaction to automatically fill the nonce, chain_id or gas_price.")

    def _fill_from_client(self):
        if self.client is None:
            return
        # The nonce is per sender, so it can only be fetched once the sender is known.
        if self.nonce is None and self.from_ is not None:
            self.nonce = self.client.get_transaction_count(self.from_)
        if self.chain_id is None:
            self.chain_id = self.client.get_chain_id()
        if self.gas_price is None:
            self.gas_price = self.client.get_gas_price()
        logger.debug('filled %s: nonce=%s chain_id=%s gas_price=%s',
                     self.TYPE, self.nonce, self.chain_id, self.gas_price)

    # --- Signing ---

    def sign_with_key(self, keyring, index: int = 0, hasher: Hasher = get_hash_for_signature) -> 'Transaction':
        """
        Signs the transaction with one key of the keyring and appends the signature.

        Args:
            keyring (Union[Keyring, str]): The keyring to sign with, or a private key string.
            index (int): The index of the key within the role. Defaults to 0.
            hasher (Hasher): Computes the digest to sign. Defaults to `get_hash_for_signature`.

        Returns:
            Transaction: self, for chaining.

        Raises:
            IncompatibleKeyTypeError: If a legacy transaction is signed with a decoupled keyring.
            AddressMismatchError: If `from_` is set and differs from the keyring address.
        """
        keyring = self._prepare_sender(keyring)
        signature = keyring.sign(hasher(self), number_to_int(self.chain_id), self.TYPE.role, index)
        self.append_signatures(signature)
        return self

    def sign_with_keys(self, keyring, hasher: Hasher = get_hash_for_signature) -> 'Transaction':
        """
        Signs the transaction with every key the keyring holds for this transaction's
        role and appends the signatures in key order.
        """
        keyring = self._prepare_sender(keyring)
        signatures = keyring.sign_all(hasher(self), number_to_int(self.chain_id), self.TYPE.role)
        self.append_signatures(signatures)
        return self

    def _prepare_sender(self, keyring):
        keyring = _resolve_keyring(keyring)
        if self.TYPE == TransactionType.TxTypeLegacyTransaction and keyring.is_decoupled():
            raise IncompatibleKeyTypeError('A legacy transaction cannot be signed with a decoupled keyring.')

        if self.from_ is None:
            self.from_ = keyring.address
        if self.from_ != keyring.address.lower():
            raise AddressMismatchError(
                f'The from address of the transaction ({self.from_}) is different from the address '
                f'of the keyring to use ({keyring.address}).')

        self.fill()
        return keyring

    def append_signatures(self, signatures: Union[SignatureData, Iterable[SignatureData]]):
        """
        Appends one or more sender signatures, keeping their order. Empty placeholders are skipped.
        """
        for signature in as_signature_list(signatures):
            self.signatures.append(signature)
            logger.debug('appended sender signature %s to %s', signature, self.TYPE)

    # --- Merging ---

    def combine_signatures(self, rlp_encoded: Iterable[Union[str, bytes]]) -> str:
        """
        Merges the signatures of independently signed copies of this transaction.

        While this transaction holds no signatures, unset fields (nonce, gas price and,
        with fee delegation, fee payer) are taken from the first copy supplying them.
        Every copy must then match this transaction in every field but the signatures.

        Args:
            rlp_encoded (Iterable[Union[str, bytes]]): Raw transactions to merge, in order.

        Returns:
            str: The raw transaction carrying all signatures.

        Raises:
            InconsistentTransactionError: If a copy differs from this transaction. Signatures
                merged from earlier copies stay in place.
            ValidationError: If a legacy transaction would end up with more than one signature.
        """
        # klaytx.decoder imports every concrete kind, and those import this module.
        from klaytx.decoder import decode

        fill_variable = self._is_fillable()
        for index, encoded in enumerate(rlp_encoded):
            candidate = decode(encoded)
            if fill_variable:
                self._fill_from_candidate(candidate)

            if not self.compare_tx_field(candidate):
                raise InconsistentTransactionError(
                    f'Transactions containing different information cannot be combined (item {index}).')

            self._append_from_candidate(candidate)
            logger.debug('combined signatures of item %d into %s', index, self.TYPE)

        return self.get_rlp_encoding()

    def _is_fillable(self) -> bool:
        return not self.signatures

    def _fill_from_candidate(self, candidate: 'Transaction'):
        if candidate.TYPE != self.TYPE:
            return
        if self.nonce is None:
            self.nonce = candidate.nonce
        if self.gas_price is None:
            self.gas_price = candidate.gas_price

    def _append_from_candidate(self, candidate: 'Transaction'):
        self.append_signatures(candidate.signatures)

    def compare_tx_field(self, other: 'Transaction', check_sig: bool = False) -> bool:
        """
        Tells whether another transaction has the same content as this one.

        Args:
            other (Transaction): The transaction to compare with.
            check_sig (bool): Whether the signature lists must match too, order included.

        Returns:
            bool: True if every compared field is equal.
        """
        if not isinstance(other, Transaction) or self.TYPE != other.TYPE:
            return False
        # Addresses and numbers are stored normalised, so plain equality is enough.
        for name in ('nonce', 'gas', 'gas_price') + self._field_names():
            if getattr(self, name) != getattr(other, name):
                return False
        if check_sig and self.signatures != other.signatures:
            return False
        return True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.compare_tx_field(other, check_sig=True)

    __hash__ = None

    def __str__(self) -> str:
        names = ('from_', 'nonce', 'gas', 'gas_price', 'chain_id') + self._field_names()
        lines = [f'{self.TYPE}:']
        lines += [f'    {name.rstrip("_")}: {getattr(self, name)}' for name in dict.fromkeys(names)]
        lines.append(f'    signatures: {self.signatures}')
        return '\n'.join(lines)


class FeeDelegatedTransaction(Transaction):
    """
    Base class of the kinds whose fee is paid by a second account. The fee payer signs
    independently of the sender, into its own signature list.
    """

    TAIL_LENGTH = 3

    fee_payer = AddressField(optional=True)

    def __init__(self, *, fee_payer=None, fee_payer_signatures: Iterable[SignatureData] = None, **kwargs):
        super().__init__(**kwargs)
        self.fee_payer = fee_payer
        self.fee_payer_signatures = []
        if fee_payer_signatures:
            self.append_fee_payer_signatures(fee_payer_signatures)

    def _sender_fields_with_signatures(self) -> list:
        return self._encode_fields() + [SignatureData.encode_list(self.signatures)]

    def get_rlp_encoding(self) -> str:
        """
        Returns the raw transaction:
        type_tag + RLP([field..., senderSignatures, feePayer, feePayerSignatures]).
        """
        self.validate_optional_values()
        encoded = rlp.encode(self._sender_fields_with_signatures() + [
            self._field('fee_payer').serialize(self.fee_payer),
            SignatureData.encode_list(self.fee_payer_signatures),
        ])
        return bytes_to_hex(bytes([self.tag]) + encoded)

    def get_sender_tx_hash(self) -> str:
        """
        Returns keccak256(type_tag + RLP([field..., senderSignatures])). Fee-payer data is
        left out, so the hash does not change when the fee payer signs later.
        """
        self.validate_optional_values()
        encoded = bytes([self.tag]) + rlp.encode(self._sender_fields_with_signatures())
        return bytes_to_hex(keccak(encoded))

    def get_rlp_encoding_for_fee_payer_signature(self) -> str:
        """
        Returns the payload a fee payer signs:
        RLP([RLP([type_tag, field...]), feePayer, chainId, 0, 0]).

        Raises:
            MissingFieldError: If nonce, gas price, chain id or fee payer is unset.
        """
        self.validate_optional_values(check_chain_id=True)
        if self.fee_payer is None:
            raise MissingFieldError('fee_payer')
        encoded = rlp.encode([
            self.get_common_rlp_encoding_for_signature(),
            hex_to_bytes(self.fee_payer),
            number_to_int(self.chain_id),
            0,
            0,
        ])
        return bytes_to_hex(encoded)

    @classmethod
    def _decode_tail(cls, tail: list) -> dict:
        return {
            'signatures': SignatureData.decode_list(tail[0]),
            'fee_payer': cls._field('fee_payer').deserialize(tail[1]),
            'fee_payer_signatures': SignatureData.decode_list(tail[2]),
        }

    def sign_as_fee_payer(self, keyring, index: int = 0,
                          hasher: Hasher = get_hash_for_fee_payer_signature) -> 'FeeDelegatedTransaction':
        """
        Signs the transaction as the fee payer with one key of the keyring's fee-payer role.

        Args:
            keyring (Union[Keyring, str]): The fee payer's keyring, or a private key string.
            index (int): The index of the key within the fee-payer role. Defaults to 0.
            hasher (Hasher): Computes the digest to sign. Defaults to `get_hash_for_fee_payer_signature`.

        Returns:
            FeeDelegatedTransaction: self, for chaining.

        Raises:
            AddressMismatchError: If `fee_payer` is set and differs from the keyring address.
        """
        keyring = self._prepare_fee_payer(keyring)
        signature = keyring.sign(hasher(self), number_to_int(self.chain_id), RoleGroup.FEE_PAYER, index)
        self.append_fee_payer_signatures(signature)
        return self

    def sign_as_fee_payer_with_keys(self, keyring,
                                    hasher: Hasher = get_hash_for_fee_payer_signature) -> 'FeeDelegatedTransaction':
        keyring = self._prepare_fee_payer(keyring)
        signatures = keyring.sign_all(hasher(self), number_to_int(self.chain_id), RoleGroup.FEE_PAYER)
        self.append_fee_payer_signatures(signatures)
        return self

    def _prepare_fee_payer(self, keyring):
        keyring = _resolve_keyring(keyring)
        if self.fee_payer is None:
            self.fee_payer = keyring.address
        if self.fee_payer != keyring.address.lower():
            raise AddressMismatchError(
                f'The fee payer address of the transaction ({self.fee_payer}) is different from the '
                f'address of the keyring to use ({keyring.address}).')

        self.fill()
        return keyring

    def append_fee_payer_signatures(self, signatures: Union[SignatureData, Iterable[SignatureData]]):
        for signature in as_signature_list(signatures):
            self.fee_payer_signatures.append(signature)
            logger.debug('appended fee payer signature %s to %s', signature, self.TYPE)

    def _is_fillable(self) -> bool:
        # A sender-signed copy still lacks the fee payer, and the reverse.
        return not self.signatures or not self.fee_payer_signatures

    def _fill_from_candidate(self, candidate: Transaction):
        super()._fill_from_candidate(candidate)
        if candidate.TYPE != self.TYPE:
            return
        if _is_unset_fee_payer(self.fee_payer) and not _is_unset_fee_payer(candidate.fee_payer):
            self.fee_payer = candidate.fee_payer

    def _append_from_candidate(self, candidate: Transaction):
        super()._append_from_candidate(candidate)
        self.append_fee_payer_signatures(candidate.fee_payer_signatures)

    def compare_tx_field(self, other: Transaction, check_sig: bool = False) -> bool:
        if not super().compare_tx_field(other, check_sig):
            return False
        # A copy signed only by the sender may not know the fee payer yet.
        if not _is_unset_fee_payer(self.fee_payer) and not _is_unset_fee_payer(other.fee_payer):
            if self.fee_payer != other.fee_payer:
                return False
        elif check_sig and self.fee_payer != other.fee_payer:
            return False
        if check_sig and self.fee_payer_signatures != other.fee_payer_signatures:
            return False
        return True


class FeeDelegatedTransactionWithRatio(FeeDelegatedTransaction):
    """
    Fee delegation where the fee payer covers only `fee_ratio` percent of the fee.
    The ratio goes on the wire right after the kind's own fields.
    """

    fee_ratio = FeeRatioField()

    def __init__(self, *, fee_ratio, **kwargs):
        super().__init__(**kwargs)
        self.fee_ratio = fee_ratio

    @classmethod
    def _field_names(cls) -> tuple:
        return super()._field_names() + ('fee_ratio',)


def to_raw_bytes(rlp_encoded: Union[str, bytes]) -> bytes:
    try:
        raw = hex_to_bytes(rlp_encoded)
    except (TypeError, ValueError) as e:
        raise MalformedEncodingError(f'Invalid raw transaction: {rlp_encoded!r}') from e
    if not raw:
        raise MalformedEncodingError('Empty raw transaction')
    return raw


def as_signature_list(signatures) -> list:
    if isinstance(signatures, SignatureData):
        signatures = [signatures]
    result = []
    for signature in signatures:
        if not isinstance(signature, SignatureData):
            raise InvalidFieldError('signatures', signature, 'expected SignatureData')
        if not signature.is_empty():
            result.append(signature)
    return result


def _is_unset_fee_payer(address) -> bool:
    return address is None or address == ZERO_ADDRESS


def _resolve_keyring(keyring):
    if isinstance(keyring, str):
        return Keyring.from_private_key(keyring)
    return keyring
