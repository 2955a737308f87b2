############################################################################
# Copyright 2021 Plataux LLC                                               #
#                                                                          #
# Licensed under the Apache License, Version 2.0 (the "License");          #
# you may not use this file except in compliance with the License.         #
# You may obtain a copy of the License at                                  #
#                                                                          #
#    https://www.apache.org/licenses/LICENSE-2.0                           #
#                                                                          #
# Unless required by applicable law or agreed to in writing, software      #
# distributed under the License is distributed on an "AS IS" BASIS,        #
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. #
# See the License for the specific language governing permissions and      #
# limitations under the License.                                           #
############################################################################


from __future__ import annotations

from cryptography.hazmat.primitives.asymmetric.utils import (decode_dss_signature,
                                                             encode_dss_signature)

from base64 import urlsafe_b64encode, urlsafe_b64decode, b64encode

from typing import Dict, Any, Literal

import json

# ASN.1 universal tags used by the IssuerSerial encoder
DER_INTEGER = 0x02
DER_CHARACTER_STRING = 0x1D
DER_SEQUENCE = 0x30


def int_to_bytes(num: int, order: Literal["little", "big"] = "big", byte_size=None) -> bytes:
    """
    Convert a positive int to a bytes string. if byte_size kwarg is None, a byte string with
    enough length to contain the integer will be calculated and used.

    :param num: a positive int
    :param order: "big" or "little"
    :param byte_size: Optional byte string size, automatically calculated if left None
    :return: bytes representation of the given positive num
    """
    return num.to_bytes(byte_size or (num.bit_length() + 7) // 8 or 1, order, signed=False)


def int_from_bytes(num_bytes: bytes, order: Literal["little", "big"] = "big") -> int:
    return int.from_bytes(num_bytes, order)


def bytes_to_b64(data: bytes, remove_padding=True) -> str:
    """
    byte string to URL safe Base64 string, with option to remove B64 LSB padding

    :param data: byte string
    :param remove_padding: remove b64 padding (``=`` char). True by default
    :return: base64url unicode string
    """
    text = urlsafe_b64encode(data).decode()
    if remove_padding:
        return text.replace('=', '')
    else:
        return text


def bytes_from_b64(data_b64: str, ensure_padding=True) -> bytes:
    if ensure_padding:
        remainder = len(data_b64) % 4
        if remainder > 0:
            data_b64 += ("=" * (4 - remainder))
    return urlsafe_b64decode(data_b64)


def bytes_to_std_b64(data: bytes) -> str:
    """
    byte string to a padded Base64 string in the standard alphabet (``+`` and ``/``),
    as required by the ``x5c`` and ``kid`` header parameters.
    """
    return b64encode(data).decode()


def doc_to_bytes(doc: Dict[Any, Any], sort_keys: bool = False) -> bytes:
    dt = json.dumps(
        doc,
        sort_keys=sort_keys,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return dt


def doc_to_b64(doc: Dict[Any, Any], sort_keys: bool = False) -> str:
    return bytes_to_b64(doc_to_bytes(doc, sort_keys=sort_keys))


def doc_from_b64(doc_b64: str) -> Dict[Any, Any]:
    doc: Dict[Any, Any] = json.loads(bytes_from_b64(doc_b64))
    return doc


def payload_to_str(payload: Any) -> str:
    """
    JWS payloads are either given as text, or as a JSON serializable value which is
    serialized compactly, the same way a browser's ``JSON.stringify`` would.

    :raises TypeError: the payload is neither text nor JSON serializable
    :raises ValueError: the payload holds NaN or infinite floats, or circular references
    """
    if isinstance(payload, str):
        return payload
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode("utf-8")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def ec_sig_der_to_raw(sig_der: bytes, byte_size=None) -> bytes:
    """
    Elliptic Curve Signature from DER format to RAW format (r || s)

    :param sig_der: EC Signature in DER format
    :param byte_size: byte size to fit each EC sig component. auto-fitted by default
    :return:  RAW representation of EC signature
    """
    r, s = decode_dss_signature(sig_der)
    raw = int_to_bytes(r, byte_size=byte_size) + int_to_bytes(s, byte_size=byte_size)
    return raw


def ec_sig_der_from_raw(sig_raw: bytes) -> bytes:
    t = int(len(sig_raw) / 2)
    r, s = int_from_bytes(sig_raw[:t]), int_from_bytes(sig_raw[t:])
    return encode_dss_signature(r, s)


def der_length(length: int) -> bytes:
    if length < 0x80:
        return bytes([length])
    len_bytes = int_to_bytes(length)
    return bytes([0x80 | len(len_bytes)]) + len_bytes


def der_tlv(tag: int, content: bytes) -> bytes:
    return bytes([tag]) + der_length(len(content)) + content


def der_integer(value: bytes) -> bytes:
    """
    DER INTEGER whose content octets are ``value`` as given, e.g. the big-endian bytes
    of a certificate serial number. No sign octet is added.
    """
    return der_tlv(DER_INTEGER, value or b'\x00')


def der_character_string(text: str) -> bytes:
    return der_tlv(DER_CHARACTER_STRING, text.encode("utf-8"))


def der_sequence(*items: bytes) -> bytes:
    return der_tlv(DER_SEQUENCE, b''.join(items))
