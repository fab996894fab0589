from typing import Optional, Union

from eth_typing import HexStr
from eth_utils import add_0x_prefix, encode_hex, is_hex, is_hex_address, to_bytes

from klaytx.errors import InvalidFieldError

# --- Module-level Constants ---
ADDRESS_LENGTH = 20  # Length in bytes of an account address.
EMPTY_HEX = '0x'  # Hex form of an empty byte string, also accepted as "unset".
ZERO_ADDRESS = '0x' + '00' * ADDRESS_LENGTH


def is_unset(value) -> bool:
    """
    Tells whether a field value stands for "not set yet".

    Args:
        value: A raw field value as given by a caller or a decoder.

    Returns:
        bool: True for None, the empty string and the bare '0x' prefix.
    """
    return value is None or value == '' or value == EMPTY_HEX


def hex_to_bytes(value: Union[str, bytes]) -> bytes:
    """
    Converts a hex string (with or without the '0x' prefix) into bytes.
    Bytes are returned unchanged.

    Args:
        value (Union[str, bytes]): The hex string or bytes to convert.

    Returns:
        bytes: The decoded bytes.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return to_bytes(hexstr=HexStr(value))


def bytes_to_hex(value: bytes) -> str:
    """
    Converts bytes into the lower-case, '0x'-prefixed hex form used for every
    string this library outputs.
    """
    return encode_hex(value)


def number_to_int(value: str) -> int:
    return int(value, 16)


def normalize_number(name: str, value, optional: bool = False) -> Optional[str]:
    """
    Validates a numeric field and returns it in canonical hex form.

    Args:
        name (str): The field name, used in the error message.
        value: A non-negative int or a '0x'-prefixed hex string.
        optional (bool): If True, unset values are accepted and returned as None.

    Returns:
        Optional[str]: The canonical hex string (e.g. '0x1a'), or None when unset.

    Raises:
        InvalidFieldError: If the value is not a non-negative hex-encoded integer.
    """
    if optional and is_unset(value):
        return None
    # bool is an int subclass; True is never a meaningful gas or nonce.
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise InvalidFieldError(name, value, 'must be non-negative')
        return hex(value)
    if isinstance(value, str) and value[:2].lower() == '0x' and len(value) > 2 and is_hex(value):
        return hex(int(value, 16))
    raise InvalidFieldError(name, value, 'expected a non-negative integer or a 0x-prefixed hex string')


def normalize_address(name: str, value, optional: bool = False) -> Optional[str]:
    """
    Validates an address field and returns it lower-cased and '0x'-prefixed.

    Args:
        name (str): The field name, used in the error message.
        value: A 20-byte hex-encoded address, with or without the prefix.
        optional (bool): If True, unset values are accepted and returned as None.

    Returns:
        Optional[str]: The normalised address, or None when unset.

    Raises:
        InvalidFieldError: If the value is not a 20-byte hex address.
    """
    if optional and is_unset(value):
        return None
    if isinstance(value, str) and is_hex_address(value):
        return add_0x_prefix(HexStr(value.lower()))
    raise InvalidFieldError(name, value, 'expected a 20-byte hex address')


def normalize_data(name: str, value) -> str:
    """
    Validates a free-form data field (call data, encoded keys) and returns it
    lower-cased with the '0x' prefix. Bytes are accepted as well.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes_to_hex(bytes(value))
    if isinstance(value, str) and (value in ('', EMPTY_HEX) or is_hex(value)):
        unprefixed = value[2:] if value[:2].lower() == '0x' else value
        if len(unprefixed) % 2 == 0:
            return EMPTY_HEX + unprefixed.lower()
    raise InvalidFieldError(name, value, 'expected hex-encoded data')
