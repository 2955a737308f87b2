import base64
import os
from random import choice

import pytest

from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

import jades.convert as conv


@pytest.mark.parametrize(
    "num",
    [0, 51231986123871638713875481283751283,
     *[choice(range(4343258345843688645)) for _ in range(20)]]
)
def test_int_bytes(num):
    b = conv.int_to_bytes(num)
    assert conv.int_from_bytes(b) == num
    assert len(conv.int_to_bytes(num, byte_size=32)) == 32


@pytest.mark.parametrize("num", [None, "128", 1024.0, b'256', -1022032])
def test_fail_int_bytes(num):
    with pytest.raises((TypeError, AttributeError, OverflowError)):
        conv.int_to_bytes(num)


def test_bytes_base64():
    for _ in range(20):
        bt = os.urandom(choice(range(1, 2048)))

        b64url = conv.bytes_to_b64(bt)
        assert '=' not in b64url and '+' not in b64url and '/' not in b64url
        assert conv.bytes_from_b64(b64url) == bt

        assert base64.b64decode(conv.bytes_to_std_b64(bt), validate=True) == bt


def test_doc_b64():
    doc = {'alg': "RS256", 'crit': ["sigT"], 'x5t#S256': "abc"}
    assert conv.doc_to_bytes(doc) == b'{"alg":"RS256","crit":["sigT"],"x5t#S256":"abc"}'
    assert conv.doc_from_b64(conv.doc_to_b64(doc)) == doc

    # non-ASCII text is kept as UTF-8, not escaped
    assert conv.doc_to_bytes({'addressLocality': "Forlì"}) == \
           '{"addressLocality":"Forlì"}'.encode()


@pytest.mark.parametrize("payload,text", [
    ("already text", "already text"),
    (b'\xc3\xa0 bytes', "à bytes"),
    ({'a': [1, 2.5, None, True]}, '{"a":[1,2.5,null,true]}'),
    ("", ""),
    (12, "12"),
])
def test_payload_to_str(payload, text):
    assert conv.payload_to_str(payload) == text


def test_payload_to_str_invalid():
    with pytest.raises(TypeError):
        conv.payload_to_str(object())
    with pytest.raises(ValueError):
        conv.payload_to_str([float('inf')])


def test_ec_sig_raw():
    der = conv.der_sequence(conv.der_integer(b'\x01'), conv.der_integer(b'\x00\xff'))
    raw = conv.ec_sig_der_to_raw(der, byte_size=32)
    assert len(raw) == 64
    assert raw[31] == 1 and raw[63] == 0xff
    assert decode_dss_signature(conv.ec_sig_der_from_raw(raw)) == (1, 255)
