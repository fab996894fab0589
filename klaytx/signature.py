from typing import Iterable, Union

from klaytx.errors import InvalidFieldError, MalformedEncodingError
from klaytx.utils import bytes_to_hex, hex_to_bytes, normalize_data


class SignatureData:
    """
    Represents one ECDSA signature attached to a transaction as the (v, r, s) triple.

    `v` carries the recovery id folded together with the chain id
    (recovery_id + 35 + 2 * chain_id). `r` and `s` are the signature scalars.
    All three are RLP integers on the wire and are kept as lower-case '0x'-prefixed
    hex strings of their canonical bytes, without leading zero bytes, so two tuples
    are equal exactly when they encode to the same bytes.
    """

    def __init__(self, v: Union[str, bytes, int], r: Union[str, bytes, int], s: Union[str, bytes, int]):
        """
        Initializes a SignatureData object.

        Args:
            v (Union[str, bytes, int]): The 'v' component of the signature.
            r (Union[str, bytes, int]): The 'r' component of the signature.
            s (Union[str, bytes, int]): The 's' component of the signature.
        """
        self.v = self.__normalize('v', v)
        self.r = self.__normalize('r', r)
        self.s = self.__normalize('s', s)

    @staticmethod
    def __normalize(name: str, value) -> str:
        if isinstance(value, int) and not isinstance(value, bool):
            if value < 0:
                raise InvalidFieldError(name, value, 'must be non-negative')
            return bytes_to_hex(value.to_bytes((value.bit_length() + 7) // 8, 'big'))
        # Nodes read v, r and s as big integers and reject leading zero bytes.
        return bytes_to_hex(hex_to_bytes(normalize_data(name, value)).lstrip(b'\x00'))

    def is_empty(self) -> bool:
        """
        Tells whether this is the placeholder written in place of a missing signature.
        """
        return self == EMPTY_SIGNATURE

    def encode(self) -> list:
        """
        Encodes the signature into a list suitable for RLP encoding.

        Returns:
            list: [v, r, s] as bytes.
        """
        return [hex_to_bytes(self.v), hex_to_bytes(self.r), hex_to_bytes(self.s)]

    @staticmethod
    def decode(item) -> 'SignatureData':
        """
        Builds a SignatureData from a decoded RLP item.

        Args:
            item: The RLP-decoded value, expected to be a list of three byte strings.

        Returns:
            SignatureData: The decoded signature.

        Raises:
            MalformedEncodingError: If the item is not a [v, r, s] list of byte strings.
        """
        if not isinstance(item, list) or len(item) != 3 or not all(isinstance(x, bytes) for x in item):
            raise MalformedEncodingError(f'Invalid signature tuple: {item!r}')
        if not item[0]:
            raise MalformedEncodingError(f'Invalid signature tuple: empty v in {item!r}')
        return SignatureData(*item)

    @staticmethod
    def decode_list(items) -> list:
        """
        Decodes an RLP list of signature tuples, dropping empty placeholders.
        """
        if not isinstance(items, list):
            raise MalformedEncodingError(f'Invalid signature list: {items!r}')
        signatures = [SignatureData.decode(item) for item in items]
        return [sig for sig in signatures if not sig.is_empty()]

    @staticmethod
    def encode_list(signatures: Iterable['SignatureData']) -> list:
        """
        Encodes a signature list for the wire. An empty list is written as a single
        empty placeholder, which is what nodes expect for an unsigned slot.
        """
        encoded = [sig.encode() for sig in signatures]
        return encoded or [EMPTY_SIGNATURE.encode()]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SignatureData):
            return NotImplemented
        return self.v == other.v and self.r == other.r and self.s == other.s

    def __hash__(self):
        return hash((self.v, self.r, self.s))

    def __repr__(self) -> str:
        return f'SignatureData(v={self.v}, r={self.r}, s={self.s})'


EMPTY_SIGNATURE = SignatureData('0x01', '0x', '0x')
