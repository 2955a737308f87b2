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
Certificate references of ETSI TS 119 182-1 sections 5.1.4 to 5.2.2:

* ``x5c``      https://datatracker.ietf.org/doc/html/rfc7515#section-4.1.6
* ``x5t#S256`` https://datatracker.ietf.org/doc/html/rfc7515#section-4.1.8
* ``x5t#o`` and ``sigX5ts``, the ETSI thumbprints with an explicit digest algorithm
* ``kid``, the base64 DER encoding of an IssuerSerial (https://www.ietf.org/rfc/rfc5035.txt)

"""

from __future__ import annotations

from typing import Dict, List, Sequence, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization as ser

import jades.convert as conv
import jades.exceptions as tex

cert_type = Union[x509.Certificate, bytes]

# digest algorithm names accepted by the thumbprint helpers, and the token each one
# is written as in the ``digAlg`` member
_thumbprint_algs = {
    'SHA384': ('S384', hashes.SHA384),
    'SHA512': ('S512', hashes.SHA512),
}


def load_cert(cert: cert_type) -> x509.Certificate:
    if isinstance(cert, x509.Certificate):
        return cert
    if isinstance(cert, (bytes, bytearray)):
        try:
            return x509.load_der_x509_certificate(bytes(cert))
        except ValueError as ex:
            raise tex.ArgumentError(f"Invalid DER certificate: {ex}") from ex
    raise tex.ArgumentError(f"Invalid certificate; got {type(cert).__name__}")


def load_chain(certs: Sequence[cert_type]) -> List[x509.Certificate]:
    chain = [load_cert(cert) for cert in certs]
    if len(chain) == 0:
        raise tex.ArgumentError("Invalid certificate chain; needs at least one certificate.")
    return chain


def parse_certs(certs_pem: str | bytes) -> List[x509.Certificate]:
    """
    Split a PEM bundle into its certificates, keeping the bundle order (leaf first)
    """
    if isinstance(certs_pem, str):
        certs_pem = certs_pem.encode()
    try:
        return x509.load_pem_x509_certificates(certs_pem)
    except ValueError as ex:
        raise tex.ArgumentError(f"Invalid PEM certificate bundle: {ex}") from ex


def cert_der(cert: cert_type) -> bytes:
    return load_cert(cert).public_bytes(ser.Encoding.DER)


def generate_x5c(certs: Sequence[cert_type]) -> List[str]:
    return [conv.bytes_to_std_b64(cert_der(cert)) for cert in load_chain(certs)]


def generate_x5t_s256(certs: Sequence[cert_type]) -> str:
    hasher = hashes.Hash(hashes.SHA256())
    hasher.update(cert_der(load_chain(certs)[0]))
    return conv.bytes_to_b64(hasher.finalize())


def _thumbprint(cert: x509.Certificate, alg: str) -> Dict[str, str]:
    dig_alg, hash_cls = _thumbprint_algs[alg]
    hasher = hashes.Hash(hash_cls())
    hasher.update(cert_der(cert))
    return {'digAlg': dig_alg, 'digVal': conv.bytes_to_b64(hasher.finalize())}


def _check_thumbprint_alg(alg: str):
    if alg not in _thumbprint_algs:
        raise tex.UnsupportedAlgorithm(
            f"Unsupported algorithm: {alg}; needs to be one of: {', '.join(_thumbprint_algs)}")


def generate_x5o(certs: Sequence[cert_type], alg: str) -> Dict[str, str]:
    """
    ``x5t#o`` of the signing (leaf) certificate

    :param certs: certificate chain, leaf first
    :param alg: ``SHA384`` or ``SHA512``, written as ``S384``/``S512`` in ``digAlg``
    """
    _check_thumbprint_alg(alg)
    return _thumbprint(load_chain(certs)[0], alg)


def generate_x5ts(certs: Sequence[cert_type], alg: str) -> List[Dict[str, str]]:
    """
    ``sigX5ts``: one thumbprint per certificate of the chain, in chain order. A header only
    validates when the chain holds at least two certificates.
    """
    _check_thumbprint_alg(alg)
    return [_thumbprint(cert, alg) for cert in load_chain(certs)]


def issuer_name(cert: cert_type) -> str:
    """
    Issuer distinguished name as one ``TYPE=value`` line per attribute, in certificate order
    """
    return "\n".join(f"{attr.rfc4514_attribute_name}={attr.value}"
                     for attr in load_cert(cert).issuer)


def generate_kid(cert: cert_type) -> str:
    """
    IssuerSerial ::= SEQUENCE {
        issuer        (the issuer name, as a character string)
        serialNumber  CertificateSerialNumber (INTEGER)
    }

    :return: standard base64 of the DER encoded IssuerSerial
    """
    cert = load_cert(cert)
    issuer_serial = conv.der_sequence(
        conv.der_character_string(issuer_name(cert)),
        conv.der_integer(conv.int_to_bytes(cert.serial_number)),
    )
    return conv.bytes_to_std_b64(issuer_serial)
