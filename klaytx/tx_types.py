from enum import IntEnum


class RoleGroup(IntEnum):
    """
    Key roles of a role-based account. The value is the index of the key group
    a keyring signs with.
    """
    TRANSACTION = 0
    ACCOUNT_UPDATE = 1
    FEE_PAYER = 2


class TransactionType(IntEnum):
    """
    The closed registry of transaction kinds. The value of each member is the
    one-byte tag written in front of the RLP body; tags never change meaning and
    new kinds only ever get new tags.
    """
    TxTypeLegacyTransaction = 0x00

    TxTypeValueTransfer = 0x08
    TxTypeFeeDelegatedValueTransfer = 0x09
    TxTypeFeeDelegatedValueTransferWithRatio = 0x0a

    TxTypeValueTransferMemo = 0x10
    TxTypeFeeDelegatedValueTransferMemo = 0x11
    TxTypeFeeDelegatedValueTransferMemoWithRatio = 0x12

    TxTypeAccountUpdate = 0x20
    TxTypeFeeDelegatedAccountUpdate = 0x21
    TxTypeFeeDelegatedAccountUpdateWithRatio = 0x22

    TxTypeSmartContractDeploy = 0x28
    TxTypeFeeDelegatedSmartContractDeploy = 0x29
    TxTypeFeeDelegatedSmartContractDeployWithRatio = 0x2a

    TxTypeSmartContractExecution = 0x30
    TxTypeFeeDelegatedSmartContractExecution = 0x31
    TxTypeFeeDelegatedSmartContractExecutionWithRatio = 0x32

    TxTypeCancel = 0x38
    TxTypeFeeDelegatedCancel = 0x39
    TxTypeFeeDelegatedCancelWithRatio = 0x3a

    TxTypeChainDataAnchoring = 0x48
    TxTypeFeeDelegatedChainDataAnchoring = 0x49
    TxTypeFeeDelegatedChainDataAnchoringWithRatio = 0x4a

    @property
    def tag(self) -> int:
        return self.value

    @property
    def role(self) -> RoleGroup:
        """The key role a sender signs this kind of transaction with."""
        if 'AccountUpdate' in self.name:
            return RoleGroup.ACCOUNT_UPDATE
        return RoleGroup.TRANSACTION

    @property
    def is_fee_delegated(self) -> bool:
        return 'FeeDelegated' in self.name

    def __str__(self) -> str:
        return self.name
