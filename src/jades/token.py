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
JAdES token assembly and JWS serialization

https://datatracker.ietf.org/doc/html/rfc7515#section-7

"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Optional, Dict, Any, Union

from cryptography.hazmat.primitives import hashes

import jades.convert as conv
import jades.exceptions as tex

from jades.headers import ProtectedHeader, UnprotectedHeader, check_disjoint
from jades.jws import JWS

logger = logging.getLogger(__name__)


def serialize_compact(protected: str, payload: str, signature: bytes) -> str:
    return f'{protected}.{payload}.{conv.bytes_to_b64(signature)}'


def serialize_json(protected: str, payload: str, signature: bytes,
                   header: Optional[UnprotectedHeader] = None) -> Dict[str, str]:
    """
    Flattened JWS JSON Serialization. The unprotected header, when there is one, is given
    base64url encoded like the other members.
    """
    doc = {'protected': protected}
    if header:
        doc['header'] = header.to_string()
    doc['payload'] = payload
    doc['signature'] = conv.bytes_to_b64(signature)
    return doc


class Token:
    """
    A JAdES signature under construction.

    The claim is given at construction, headers are attached, then the token is signed
    and exported::

        token = Token({"message": "Hello, world!"})
        token.set_protected_headers(build_protected_header({'x5c': x5c}, alg="RS256"))
        token.sign("RS256", key)
        str(token)

    Signing again with another key or algorithm replaces the signature and the ``alg``
    header. Changing the headers or detaching the payload drops a previous signature.
    The protected header is copied when attached, the caller's object is left untouched.
    """

    __slots__ = ('_claim', '_protected', '_header', '_signature', '_signed_protected')

    def __init__(self, claim: Any):
        try:
            self._claim: str = conv.payload_to_str(claim)
        except (TypeError, ValueError) as ex:
            raise tex.ArgumentError(
                f"Invalid payload; needs to be a string or a JSON serializable value: {ex}"
            ) from ex

        self._protected: ProtectedHeader = ProtectedHeader.blank()
        self._header: Optional[UnprotectedHeader] = None
        self._signature: bytes = b''

        # the encoded protected header the current signature was computed over
        self._signed_protected: Optional[str] = None

    def _reset(self):
        self._signature = b''
        self._signed_protected = None

    def set_protected_headers(self, headers: ProtectedHeader) -> None:
        if not isinstance(headers, ProtectedHeader):
            raise tex.ArgumentError("Invalid protected headers; needs to be a ProtectedHeader.")
        self._protected = headers.copy(deep=True)
        self._reset()

    def set_unprotected_headers(self,
                                headers: Union[UnprotectedHeader, Mapping, None]) -> None:
        if headers is not None and not isinstance(headers, UnprotectedHeader):
            headers = UnprotectedHeader(headers)
        self._header = headers if headers else None

    def set_detached_signature(self, sig_d: Optional[Mapping] = None) -> None:
        """
        Detach the payload: the claim is emptied, and the output carries an empty payload.

        The ``sigD`` header references the detached data. It is either given here or was
        already set in the protected headers; its content is not checked.
        """
        if sig_d is not None:
            self._protected.set_detached(sig_d)
        elif self._protected.sigD is None:
            raise tex.ValidationError(
                "Invalid sigD; needs to be set when the payload is detached.")

        self._claim = ""
        self._reset()

    def _protected_segment(self) -> str:
        return self._signed_protected or self._protected.to_string()

    def _payload_segment(self) -> str:
        # RFC 7797: with b64 set to false the payload is used as is
        if self._protected.b64 is False:
            return self._claim
        return conv.bytes_to_b64(self._claim.encode("utf-8"))

    def signing_input(self) -> bytes:
        return f'{self._protected_segment()}.{self._payload_segment()}'.encode("utf-8")

    def get_hash(self, alg: Union[str, JWS.Algorithm]) -> bytes:
        """
        Digest of the signing input, for a signature computed elsewhere (an HSM or a remote
        signing service) and handed back through :meth:`set_signature`.

        The ``alg`` header is set first since it is part of the signed bytes.
        """
        jws_alg = JWS.get_algorithm(alg)
        self._protected.set_alg(jws_alg)
        self._reset()

        hasher = hashes.Hash(JWS.get_hash_alg(jws_alg))
        hasher.update(self.signing_input())
        return hasher.finalize()

    def set_signature(self, alg: Union[str, JWS.Algorithm], signature: bytes) -> None:
        self._protected.set_alg(alg)
        self._signed_protected = self._protected.to_string()
        self._signature = bytes(signature)

    def sign(self, alg: Union[str, JWS.Algorithm], key: Any) -> str:
        """
        Sign the token

        :param alg: signature algorithm
        :param key: RSA or EC private key, or the HMAC secret as bytes
        :return: the base64url encoded signature
        :raises KeyTypeError: the key cannot be used with ``alg``. The token is left unchanged
        """
        signer = JWS(alg, key)

        self._protected.set_alg(signer.jws_alg)
        protected = self._protected.to_string()

        self._signature = signer.sign(f'{protected}.{self._payload_segment()}'.encode("utf-8"))
        self._signed_protected = protected

        logger.debug("signed token with %s", signer.alg_name)
        return conv.bytes_to_b64(self._signature)

    def to_string(self) -> str:
        """
        Export the token in the JWS Compact Serialization
        """
        if self._header is not None:
            raise tex.ArgumentError("Invalid unprotected headers; only allowed when the "
                                    "serialization is JSON.")

        payload = self._payload_segment()
        if self._protected.b64 is False and '.' in payload:
            raise tex.ArgumentError("Invalid payload; an unencoded payload cannot contain '.' "
                                    "in the compact serialization.")

        return serialize_compact(self._protected_segment(), payload, self._signature)

    def to_object(self) -> Dict[str, str]:
        """
        Export the token in the flattened JWS JSON Serialization
        """
        check_disjoint(self._protected, self._header)
        return serialize_json(self._protected_segment(), self._payload_segment(),
                              self._signature, self._header)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Token(alg={self._protected.alg}, detached={self.detached}, " \
               f"signed={self.signed})"

    @property
    def protected_header(self) -> ProtectedHeader:
        return self._protected

    @property
    def unprotected_header(self) -> Optional[UnprotectedHeader]:
        return self._header

    @property
    def claim(self) -> str:
        return self._claim

    @property
    def signature(self) -> bytes:
        return self._signature

    @property
    def detached(self) -> bool:
        return self._protected.sigD is not None and self._claim == ""

    @property
    def signed(self) -> bool:
        return self._signed_protected is not None
