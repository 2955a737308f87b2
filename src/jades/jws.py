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

"""
JWS signature algorithms of https://datatracker.ietf.org/doc/html/rfc7518#section-3.1
as profiled by ETSI TS 119 182-1 and ETSI TS 119 312, the key compatibility rules that
gate them, and the raw signature primitives.

"""

from __future__ import annotations

import enum
import logging

from typing import Dict, Any, Union, Optional
from math import ceil

from cryptography.hazmat.primitives.hashes import SHA256, SHA384, SHA512
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import SECP256R1, SECP384R1, SECP521R1
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives import serialization as ser

import jades.convert as conv
import jades.exceptions as tex

logger = logging.getLogger(__name__)

jws_kty = Union[ec.EllipticCurvePrivateKey, rsa.RSAPrivateKey, bytes]

RSA_MIN_KEY_SIZE = 2048


class JWS:
    """
    A signing algorithm bound to a key that was checked to be usable with it.

    Constructing the object is the compatibility check: a key of the wrong family, an EC
    key on the wrong curve, or an RSA modulus below 2048 bits raises
    :class:`jades.exceptions.KeyTypeError` before anything gets signed.
    """

    class Algorithm(enum.Enum):
        RS256 = "RS256"
        RS384 = "RS384"
        RS512 = "RS512"
        PS256 = "PS256"
        PS384 = "PS384"
        PS512 = "PS512"
        ES256 = "ES256"
        ES384 = "ES384"
        ES512 = "ES512"
        HS256 = "HS256"
        HS384 = "HS384"
        HS512 = "HS512"

    alg_to_curve: Dict[str, Any] = {
        'ES256': {'curve': SECP256R1(), 'crv': 'P-256'},
        'ES384': {'curve': SECP384R1(), 'crv': 'P-384'},
        'ES512': {'curve': SECP521R1(), 'crv': 'P-521'},
    }

    _HMAC = ('HS256', 'HS384', 'HS512')
    _EC = ('ES256', 'ES384', 'ES512')
    _RSA = ('RS256', 'RS384', 'RS512', 'PS256', 'PS384', 'PS512')

    @staticmethod
    def get_algorithm(jws_alg: str | Algorithm) -> JWS.Algorithm:
        if isinstance(jws_alg, JWS.Algorithm):
            return jws_alg
        try:
            return JWS.Algorithm(jws_alg)
        except ValueError:
            valid = ", ".join(item.value for item in JWS.Algorithm)
            raise tex.UnsupportedAlgorithm(
                f"alg {jws_alg} is not supported; needs to be one of: {valid}") from None

    @staticmethod
    def get_hash_alg(jws_alg: str | Algorithm) -> hashes.HashAlgorithm:
        alg = JWS.get_algorithm(jws_alg)

        if (_alg := alg.name[2:5]) == '256':
            return SHA256()
        elif _alg == '384':
            return SHA384()
        elif _alg == '512':
            return SHA512()
        else:
            raise tex.UnsupportedAlgorithm(f"no digest defined for {alg.name}")

    __slots__ = ('_key', '_alg', '_kty', '_hash_alg', '_hmac_key',
                 '_rsa_privkey', '_rsa_pad', '_ec_privkey', '_ec_size', '_crv')

    def __init__(self, algorithm: Union[str, JWS.Algorithm], key_obj: Any):

        self._alg: JWS.Algorithm = JWS.get_algorithm(algorithm)
        self._hash_alg: hashes.HashAlgorithm = JWS.get_hash_alg(self._alg)
        self._key = key_obj

        if self._alg.name in JWS._HMAC:
            self._init_hmac()
        elif self._alg.name in JWS._RSA:
            self._init_rsa()
        elif self._alg.name in JWS._EC:
            self._init_ec()
        else:
            raise tex.UnsupportedAlgorithm(f"Unrecognized JWS Algo {self._alg.name}")

    def _init_hmac(self):
        if not isinstance(self._key, (bytes, bytearray)):
            raise tex.KeyTypeError(
                f"{self._alg.name} expects a symmetric secret given as bytes, "
                f"got {_describe_key(self._key)}")

        self._kty = 'oct'
        self._hmac_key: bytes = bytes(self._key)

        del self._key

    def _init_rsa(self):
        if not isinstance(self._key, rsa.RSAPrivateKey):
            raise tex.KeyTypeError(
                f"{self._alg.name} expects an RSA private key, got {_describe_key(self._key)}")

        if self._key.key_size < RSA_MIN_KEY_SIZE:
            raise tex.KeyTypeError(
                f"{self._alg.name} expects an RSA modulus of at least {RSA_MIN_KEY_SIZE} bits, "
                f"got {self._key.key_size} bits")

        if self._alg.name[:2] == "PS":
            self._rsa_pad: Any = padding.PSS(mgf=padding.MGF1(self._hash_alg),
                                             salt_length=self._hash_alg.digest_size)
        else:
            self._rsa_pad = padding.PKCS1v15()

        self._kty = 'RSA'
        self._rsa_privkey: rsa.RSAPrivateKey = self._key

        del self._key

    def _init_ec(self):
        if not isinstance(self._key, ec.EllipticCurvePrivateKey):
            raise tex.KeyTypeError(
                f"{self._alg.name} expects an EC private key, got {_describe_key(self._key)}")

        expected = JWS.alg_to_curve[self._alg.name]

        if self._key.curve.name != expected['curve'].name:
            raise tex.KeyTypeError(
                f"{self._alg.name} expects an EC key on curve {expected['crv']}, "
                f"got {self._key.curve.name}")

        self._kty = 'EC'
        self._crv: str = expected['crv']
        self._ec_size = int(ceil(self._key.key_size / 8))
        self._ec_privkey: ec.EllipticCurvePrivateKey = self._key

        del self._key

    def sign(self, data: bytes) -> bytes:
        """
        Sign the JWS signing input and return the raw signature bytes. EC signatures are
        returned as the fixed width ``r || s`` concatenation, not DER.
        """
        logger.debug("computing %s signature over %d bytes", self._alg.name, len(data))

        if self._kty == 'oct':
            h = hmac.HMAC(self._hmac_key, self._hash_alg)
            h.update(data)
            return h.finalize()
        elif self._kty == 'RSA':
            return self._rsa_privkey.sign(data, self._rsa_pad, self._hash_alg)
        elif self._kty == 'EC':
            sig = self._ec_privkey.sign(data, ec.ECDSA(self._hash_alg))
            return conv.ec_sig_der_to_raw(sig, byte_size=self._ec_size)
        else:
            raise RuntimeError("should be an unreachable statement")

    def do_hash(self, data: str | bytes) -> bytes:
        if isinstance(data, str):
            data = data.encode()
        hasher = hashes.Hash(self._hash_alg)
        hasher.update(data)
        return hasher.finalize()

    @property
    def jws_alg(self) -> JWS.Algorithm:
        return self._alg

    @property
    def alg_name(self) -> str:
        return self._alg.value

    @property
    def kty(self) -> str:
        return self._kty

    @property
    def hash_alg(self) -> hashes.HashAlgorithm:
        return self._hash_alg

    def __str__(self) -> str:
        return f"{self.kty} | {self.alg_name}"

    def __repr__(self) -> str:
        return str(self)


def _describe_key(key: Any) -> str:
    if isinstance(key, rsa.RSAPrivateKey):
        return f"an RSA private key ({key.key_size} bits)"
    if isinstance(key, rsa.RSAPublicKey):
        return "an RSA public key"
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return f"an EC private key ({key.curve.name})"
    if isinstance(key, ec.EllipticCurvePublicKey):
        return "an EC public key"
    if isinstance(key, (bytes, bytearray)):
        return "a symmetric secret"
    return type(key).__name__


def check_key_type(alg: Union[str, JWS.Algorithm], key: Any) -> JWS.Algorithm:
    """
    Make sure ``key`` can produce ``alg`` signatures, without signing anything.

    :raises UnsupportedAlgorithm: ``alg`` is outside the algorithm table
    :raises KeyTypeError: wrong key family, wrong EC curve or RSA modulus under 2048 bits
    """
    return JWS(alg, key).jws_alg


def sign(alg: Union[str, JWS.Algorithm], key: Any, data: bytes) -> bytes:
    return JWS(alg, key).sign(data)


def load_private_key(key_pem: str | bytes, password: Optional[bytes] = None) -> jws_kty:
    """
    Load an RSA or EC private key from PEM text (PKCS#1, SEC1 or PKCS#8)

    :raises ArgumentError: the PEM data cannot be parsed, or holds another kind of key
    """
    if isinstance(key_pem, str):
        key_pem = key_pem.encode()

    try:
        priv_key = ser.load_pem_private_key(key_pem, password=password)
    except (ValueError, TypeError) as ex:
        raise tex.ArgumentError(f"Invalid Private Key PEM: {ex}") from ex

    if not isinstance(priv_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise tex.ArgumentError(f"Unsupported private key type: {type(priv_key).__name__}")

    return priv_key
