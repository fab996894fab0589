from typing import Union

from klaytx import model
from klaytx.errors import UnknownOrMismatchedTagError
from klaytx.transaction import Transaction, to_raw_bytes
from klaytx.tx_types import TransactionType

# Dispatch table from type tag to the class decoding it.
TRANSACTION_CLASSES = {
    TransactionType.TxTypeLegacyTransaction: model.LegacyTransaction,

    TransactionType.TxTypeValueTransfer: model.ValueTransfer,
    TransactionType.TxTypeFeeDelegatedValueTransfer: model.FeeDelegatedValueTransfer,
    TransactionType.TxTypeFeeDelegatedValueTransferWithRatio: model.FeeDelegatedValueTransferWithRatio,

    TransactionType.TxTypeValueTransferMemo: model.ValueTransferMemo,
    TransactionType.TxTypeFeeDelegatedValueTransferMemo: model.FeeDelegatedValueTransferMemo,
    TransactionType.TxTypeFeeDelegatedValueTransferMemoWithRatio: model.FeeDelegatedValueTransferMemoWithRatio,

    TransactionType.TxTypeAccountUpdate: model.AccountUpdate,
    TransactionType.TxTypeFeeDelegatedAccountUpdate: model.FeeDelegatedAccountUpdate,
    TransactionType.TxTypeFeeDelegatedAccountUpdateWithRatio: model.FeeDelegatedAccountUpdateWithRatio,

    TransactionType.TxTypeSmartContractDeploy: model.SmartContractDeploy,
    TransactionType.TxTypeFeeDelegatedSmartContractDeploy: model.FeeDelegatedSmartContractDeploy,
    TransactionType.TxTypeFeeDelegatedSmartContractDeployWithRatio: model.FeeDelegatedSmartContractDeployWithRatio,

    TransactionType.TxTypeSmartContractExecution: model.SmartContractExecution,
    TransactionType.TxTypeFeeDelegatedSmartContractExecution: model.FeeDelegatedSmartContractExecution,
    TransactionType.TxTypeFeeDelegatedSmartContractExecutionWithRatio:
        model.FeeDelegatedSmartContractExecutionWithRatio,

    TransactionType.TxTypeCancel: model.Cancel,
    TransactionType.TxTypeFeeDelegatedCancel: model.FeeDelegatedCancel,
    TransactionType.TxTypeFeeDelegatedCancelWithRatio: model.FeeDelegatedCancelWithRatio,

    TransactionType.TxTypeChainDataAnchoring: model.ChainDataAnchoring,
    TransactionType.TxTypeFeeDelegatedChainDataAnchoring: model.FeeDelegatedChainDataAnchoring,
    TransactionType.TxTypeFeeDelegatedChainDataAnchoringWithRatio: model.FeeDelegatedChainDataAnchoringWithRatio,
}


def get_transaction_class(tag: int) -> type:
    """
    Looks up the class registered for a type tag.

    Args:
        tag (int): The one-byte type tag.

    Returns:
        type: The Transaction subclass handling the tag.

    Raises:
        UnknownOrMismatchedTagError: If no kind is registered under the tag.
    """
    try:
        return TRANSACTION_CLASSES[TransactionType(tag)]
    except ValueError:
        raise UnknownOrMismatchedTagError(f'Unknown transaction type tag: {tag:#04x}') from None


def decode(rlp_encoded: Union[str, bytes]) -> Transaction:
    """
    Decodes a raw transaction of any registered kind.

    The leading byte selects the kind: an RLP list prefix means a legacy transaction,
    anything else must be a registered type tag.

    Args:
        rlp_encoded (Union[str, bytes]): The raw transaction as a hex string or bytes.

    Returns:
        Transaction: The decoded transaction.

    Raises:
        UnknownOrMismatchedTagError: If the leading byte is not a registered tag.
        MalformedEncodingError: If the body does not match the kind's layout.
    """
    raw = to_raw_bytes(rlp_encoded)
    if raw[0] >= model.RLP_LIST_OFFSET:
        return model.LegacyTransaction.decode(raw)
    # Tag 0x00 is never written on the wire, only the untagged legacy form is.
    if raw[0] == TransactionType.TxTypeLegacyTransaction:
        raise UnknownOrMismatchedTagError('Legacy transactions are not prefixed with a type tag.')
    return get_transaction_class(raw[0]).decode(raw)
