"""
The concrete transaction kinds.

Each family (value transfer, memo, account update, deploy, execution, cancel,
chain data anchoring) declares its payload fields once, in a fields class, and
comes in three kinds built from it: basic, fee-delegated and fee-delegated with
a fee ratio. The legacy transaction stands on its own: it has no type tag on the
wire and carries at most one signature.
"""
import rlp
from eth_hash.auto import keccak
from eth_keys import keys as eth_keys
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError

from klaytx.errors import InvalidFieldError, MalformedEncodingError, UnknownOrMismatchedTagError, ValidationError
from klaytx.keys import chain_id_from_v, recovery_id_from_v
from klaytx.signature import EMPTY_SIGNATURE, SignatureData
from klaytx.transaction import (
    AddressField,
    DataField,
    FeeDelegatedTransaction,
    FeeDelegatedTransactionWithRatio,
    FlagField,
    NumberField,
    Transaction,
    as_signature_list,
    to_raw_bytes,
)
from klaytx.tx_types import TransactionType
from klaytx.utils import EMPTY_HEX, bytes_to_hex, hex_to_bytes, number_to_int

# First byte of an RLP list; a legacy transaction starts with one instead of a type tag.
RLP_LIST_OFFSET = 0xc0


class AccountKeyField(DataField):
    """The RLP-encoded account key of an account update. Its structure belongs to key management."""

    def normalize(self, value):
        value = super().normalize(value)
        if value == EMPTY_HEX:
            raise InvalidFieldError(self.label, value, 'account key is missing')
        return value


class LegacyTransaction(Transaction):
    """
    The Ethereum-compatible transaction.

    Raw form: RLP([nonce, gasPrice, gas, to, value, input, v, r, s]), without a type tag.
    Signing payload: RLP([nonce, gasPrice, gas, to, value, input, chainId, 0, 0]).
    The sender is not on the wire; decoding recovers it from the signature.
    """

    TYPE = TransactionType.TxTypeLegacyTransaction
    RLP_FIELDS = ('nonce', 'gas_price', 'gas', 'to', 'value', 'input')
    TAIL_LENGTH = 3

    to = AddressField(optional=True)
    value = NumberField()
    input = DataField()

    def __init__(self, *, to=None, value=0, input='0x', **kwargs):
        super().__init__(**kwargs)
        self.to = to
        self.value = value
        self.input = input

    def append_signatures(self, signatures):
        signatures = as_signature_list(signatures)
        if len(self.signatures) + len(signatures) > 1:
            raise ValidationError('LegacyTransaction only supports a single signature.')
        super().append_signatures(signatures)

    def get_rlp_encoding(self) -> str:
        self.validate_optional_values()
        signature = self.signatures[0] if self.signatures else EMPTY_SIGNATURE
        return bytes_to_hex(rlp.encode(self._encode_fields() + signature.encode()))

    def get_rlp_encoding_for_signature(self) -> str:
        self.validate_optional_values(check_chain_id=True)
        return bytes_to_hex(rlp.encode(self._encode_fields() + [number_to_int(self.chain_id), 0, 0]))

    @classmethod
    def decode(cls, rlp_encoded) -> 'LegacyTransaction':
        raw = to_raw_bytes(rlp_encoded)
        if raw[0] < RLP_LIST_OFFSET:
            raise UnknownOrMismatchedTagError(f'Invalid RLP-encoded tag - {cls.TYPE}: got {raw[0]:#04x}')
        return cls._decode_body(raw)

    @classmethod
    def _decode_tail(cls, tail: list) -> dict:
        signature = SignatureData.decode(tail)
        if signature.is_empty():
            return {}
        return {'signatures': [signature]}

    @classmethod
    def _from_rlp_values(cls, values) -> 'LegacyTransaction':
        transaction = super()._from_rlp_values(values)
        if transaction.signatures:
            transaction.from_ = transaction.recover_sender()
            chain_id = chain_id_from_v(_signature_int(transaction.signatures[0].v))
            if chain_id is not None:
                transaction.chain_id = chain_id
        return transaction

    def recover_sender(self) -> str:
        """
        Recovers the sender address from the signature.

        Returns:
            str: The lower-case sender address.

        Raises:
            MalformedEncodingError: If there is no signature or it does not recover to a public key.
        """
        if not self.signatures:
            raise MalformedEncodingError('Cannot recover the sender of an unsigned legacy transaction.')
        signature = self.signatures[0]
        v = _signature_int(signature.v)
        chain_id = chain_id_from_v(v)
        if chain_id is None:
            payload = rlp.encode(self._encode_fields())
        else:
            payload = rlp.encode(self._encode_fields() + [chain_id, 0, 0])
        try:
            vrs = (recovery_id_from_v(v), _signature_int(signature.r), _signature_int(signature.s))
            public_key = eth_keys.Signature(vrs=vrs).recover_public_key_from_msg_hash(keccak(payload))
        except (BadSignature, KeyValidationError) as e:
            raise MalformedEncodingError(f'Cannot recover the sender: {e}') from e
        return public_key.to_address().lower()

    def compare_tx_field(self, other: Transaction, check_sig: bool = False) -> bool:
        if not super().compare_tx_field(other, check_sig):
            return False
        # The sender is only known on a copy that carries a signature.
        if self.from_ is not None and other.from_ is not None and self.from_ != other.from_:
            return False
        return True


def _signature_int(value: str) -> int:
    # Signature components are canonical RLP integers, so zero is the empty string.
    return int.from_bytes(hex_to_bytes(value), 'big')


# --- Value transfer ---

class _ValueTransferFields:
    RLP_FIELDS = ('nonce', 'gas_price', 'gas', 'to', 'value', 'from_')

    to = AddressField()
    value = NumberField()

    def __init__(self, *, to, value, **kwargs):
        super().__init__(**kwargs)
        self.to = to
        self.value = value


class ValueTransfer(_ValueTransferFields, Transaction):
    """Sends KLAY from one account to another."""
    TYPE = TransactionType.TxTypeValueTransfer


class FeeDelegatedValueTransfer(_ValueTransferFields, FeeDelegatedTransaction):
    TYPE = TransactionType.TxTypeFeeDelegatedValueTransfer


class FeeDelegatedValueTransferWithRatio(_ValueTransferFields, FeeDelegatedTransactionWithRatio):
    TYPE = TransactionType.TxTypeFeeDelegatedValueTransferWithRatio


# --- Value transfer with memo ---

class _ValueTransferMemoFields:
    RLP_FIELDS = ('nonce', 'gas_price', 'gas', 'to', 'value', 'from_', 'input')

    to = AddressField()
    value = NumberField()
    input = DataField()

    def __init__(self, *, to, value, input, **kwargs):
        super().__init__(**kwargs)
        self.to = to
        self.value = value
        self.input = input


class ValueTransferMemo(_ValueTransferMemoFields, Transaction):
    """Sends KLAY together with a memo in `input`."""
    TYPE = TransactionType.TxTypeValueTransferMemo


class FeeDelegatedValueTransferMemo(_ValueTransferMemoFields, FeeDelegatedTransaction):
    TYPE = TransactionType.TxTypeFeeDelegatedValueTransferMemo


class FeeDelegatedValueTransferMemoWithRatio(_ValueTransferMemoFields, FeeDelegatedTransactionWithRatio):
    TYPE = TransactionType.TxTypeFeeDelegatedValueTransferMemoWithRatio


# --- Account update ---

class _AccountUpdateFields:
    RLP_FIELDS = ('nonce', 'gas_price', 'gas', 'from_', 'account_key')

    account_key = AccountKeyField()

    def __init__(self, *, account_key, **kwargs):
        super().__init__(**kwargs)
        self.account_key = account_key


class AccountUpdate(_AccountUpdateFields, Transaction):
    """
    Replaces the key of the sender account. Signed with the account-update role.
    """
    TYPE = TransactionType.TxTypeAccountUpdate


class FeeDelegatedAccountUpdate(_AccountUpdateFields, FeeDelegatedTransaction):
    TYPE = TransactionType.TxTypeFeeDelegatedAccountUpdate


class FeeDelegatedAccountUpdateWithRatio(_AccountUpdateFields, FeeDelegatedTransactionWithRatio):
    TYPE = TransactionType.TxTypeFeeDelegatedAccountUpdateWithRatio


# --- Smart contract deploy ---

class _SmartContractDeployFields:
    RLP_FIELDS = ('nonce', 'gas_price', 'gas', 'to', 'value', 'from_', 'input', 'human_readable', 'code_format')

    to = AddressField(optional=True, allowed=(None,), reason='must be empty for a contract deployment')
    value = NumberField()
    input = DataField()
    human_readable = FlagField(allowed=(False,), reason='human-readable addresses are not supported')
    code_format = NumberField(allowed=('0x0',), reason='only the EVM code format (0x0) is supported')

    def __init__(self, *, input, to=None, value=0, human_readable=False, code_format=0, **kwargs):
        super().__init__(**kwargs)
        self.to = to
        self.value = value
        self.input = input
        self.human_readable = human_readable
        self.code_format = code_format


class SmartContractDeploy(_SmartContractDeployFields, Transaction):
    """Deploys the contract bytecode given in `input`."""
    TYPE = TransactionType.TxTypeSmartContractDeploy


class FeeDelegatedSmartContractDeploy(_SmartContractDeployFields, FeeDelegatedTransaction):
    TYPE = TransactionType.TxTypeFeeDelegatedSmartContractDeploy


class FeeDelegatedSmartContractDeployWithRatio(_SmartContractDeployFields, FeeDelegatedTransactionWithRatio):
    TYPE = TransactionType.TxTypeFeeDelegatedSmartContractDeployWithRatio


# --- Smart contract execution ---

class _SmartContractExecutionFields:
    RLP_FIELDS = ('nonce', 'gas_price', 'gas', 'to', 'value', 'from_', 'input')

    to = AddressField()
    value = NumberField()
    input = DataField()

    def __init__(self, *, to, input, value=0, **kwargs):
        super().__init__(**kwargs)
        self.to = to
        self.value = value
        self.input = input


class SmartContractExecution(_SmartContractExecutionFields, Transaction):
    """Calls the contract at `to` with the call data in `input`."""
    TYPE = TransactionType.TxTypeSmartContractExecution


class FeeDelegatedSmartContractExecution(_SmartContractExecutionFields, FeeDelegatedTransaction):
    """
    A smart contract execution whose fee is paid by `fee_payer`.

    Raw form: 0x31 + RLP([nonce, gasPrice, gas, to, value, from, input, txSignatures,
    feePayer, feePayerSignatures]).
    """
    TYPE = TransactionType.TxTypeFeeDelegatedSmartContractExecution


class FeeDelegatedSmartContractExecutionWithRatio(_SmartContractExecutionFields, FeeDelegatedTransactionWithRatio):
    TYPE = TransactionType.TxTypeFeeDelegatedSmartContractExecutionWithRatio


# --- Cancel ---

class _CancelFields:
    RLP_FIELDS = ('nonce', 'gas_price', 'gas', 'from_')


class Cancel(_CancelFields, Transaction):
    """Cancels the pending transaction of the sender holding the same nonce."""
    TYPE = TransactionType.TxTypeCancel


class FeeDelegatedCancel(_CancelFields, FeeDelegatedTransaction):
    TYPE = TransactionType.TxTypeFeeDelegatedCancel


class FeeDelegatedCancelWithRatio(_CancelFields, FeeDelegatedTransactionWithRatio):
    TYPE = TransactionType.TxTypeFeeDelegatedCancelWithRatio


# --- Chain data anchoring ---

class _ChainDataAnchoringFields:
    RLP_FIELDS = ('nonce', 'gas_price', 'gas', 'from_', 'input')

    input = DataField()

    def __init__(self, *, input, **kwargs):
        super().__init__(**kwargs)
        self.input = input


class ChainDataAnchoring(_ChainDataAnchoringFields, Transaction):
    """Anchors service chain data, given in `input`, on the main chain."""
    TYPE = TransactionType.TxTypeChainDataAnchoring


class FeeDelegatedChainDataAnchoring(_ChainDataAnchoringFields, FeeDelegatedTransaction):
    TYPE = TransactionType.TxTypeFeeDelegatedChainDataAnchoring


class FeeDelegatedChainDataAnchoringWithRatio(_ChainDataAnchoringFields, FeeDelegatedTransactionWithRatio):
    TYPE = TransactionType.TxTypeFeeDelegatedChainDataAnchoringWithRatio
