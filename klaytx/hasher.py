"""
Default hashing strategies for signing.

A signing call takes a `hasher`: any callable that maps a transaction to the
hex-encoded 32-byte digest to sign. The two functions below are the defaults for
the sender and the fee payer. Callers may pass their own, e.g. to sign a digest
computed by an external system.
"""
from eth_hash.auto import keccak

from klaytx.utils import bytes_to_hex, hex_to_bytes


def get_hash_for_signature(transaction) -> str:
    """
    Returns the digest a sender signs: keccak256 of the signing payload.

    Args:
        transaction (Transaction): The transaction to hash. Its nonce, gas price and chain id must be set.

    Returns:
        str: The '0x'-prefixed Keccak-256 hash.
    """
    return bytes_to_hex(keccak(hex_to_bytes(transaction.get_rlp_encoding_for_signature())))


def get_hash_for_fee_payer_signature(transaction) -> str:
    """
    Returns the digest a fee payer signs: keccak256 of the fee-payer signing payload.

    Args:
        transaction (FeeDelegatedTransaction): The fee-delegated transaction to hash.

    Returns:
        str: The '0x'-prefixed Keccak-256 hash.
    """
    return bytes_to_hex(keccak(hex_to_bytes(transaction.get_rlp_encoding_for_fee_payer_signature())))
