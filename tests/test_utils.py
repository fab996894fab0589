import pytest

from klaytx.errors import InvalidFieldError
from klaytx.utils import (
    bytes_to_hex,
    hex_to_bytes,
    is_unset,
    normalize_address,
    normalize_data,
    normalize_number,
)


@pytest.mark.parametrize('value', [None, '', '0x'])
def test_unset_markers(value):
    assert is_unset(value)
    assert normalize_number('nonce', value, optional=True) is None
    assert normalize_address('from', value, optional=True) is None


def test_zero_is_set():
    assert not is_unset(0)
    assert normalize_number('nonce', 0, optional=True) == '0x0'


@pytest.mark.parametrize('value, expected', [
    (0, '0x0'),
    (255, '0xff'),
    ('0x00ff', '0xff'),
    ('0XFF', '0xff'),
])
def test_normalize_number(value, expected):
    assert normalize_number('gas', value) == expected


@pytest.mark.parametrize('value', [None, '', '255', '0x', '0xg', -5, True, 1.5])
def test_normalize_number_rejects(value):
    with pytest.raises(InvalidFieldError) as e:
        normalize_number('gas', value)
    assert e.value.name == 'gas'


def test_normalize_address():
    assert normalize_address('to', '7B65B75D204ABED71587C9E519A89277766EE1D0') == \
        '0x7b65b75d204abed71587c9e519a89277766ee1d0'


@pytest.mark.parametrize('value', [None, '0x1234', 42, '0x' + 'zz' * 20])
def test_normalize_address_rejects(value):
    with pytest.raises(InvalidFieldError):
        normalize_address('to', value)


@pytest.mark.parametrize('value, expected', [
    ('', '0x'),
    ('0x', '0x'),
    ('ABCD', '0xabcd'),
    (b'\x12\x34', '0x1234'),
])
def test_normalize_data(value, expected):
    assert normalize_data('input', value) == expected


@pytest.mark.parametrize('value', ['0x123', 'xyz', None, 12])
def test_normalize_data_rejects(value):
    with pytest.raises(InvalidFieldError):
        normalize_data('input', value)


def test_hex_conversions():
    assert hex_to_bytes('0x0102') == b'\x01\x02'
    assert hex_to_bytes('0102') == b'\x01\x02'
    assert hex_to_bytes(b'\x01') == b'\x01'
    assert bytes_to_hex(b'\xab') == '0xab'
