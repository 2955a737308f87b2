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
JAdES header parameters

https://www.etsi.org/deliver/etsi_ts/119100_119199/11918201/01.01.01_60/ts_11918201v010101p.pdf
https://datatracker.ietf.org/doc/html/rfc7515#section-4.1
https://datatracker.ietf.org/doc/html/rfc7797#section-3

"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Optional, Dict, List, Any, Sequence, Union

import pydantic

if int(pydantic.version.VERSION.split('.')[0]) == 2:
    import pydantic.v1 as pydantic
else:
    pass

import jades.convert as conv
import jades.exceptions as tex

from jades.certs import cert_type, load_chain, generate_kid, generate_x5c, generate_x5t_s256
from jades.jws import JWS
from jades.schemas import validate_protected, validate_unprotected, format_errors

# header parameters a verifier has to understand, in the order they are listed in ``crit``
CRIT_PARAMETERS = ("x5t#o", "sigX5ts", "sigT", "sigD", "sigPl", "sigPId",
                   "srCms", "srAts", "adoTst", "b64")

# ETSI TS 119 182-1 section 5.1.7: at least one of them references the signing certificate
CERT_REFERENCES = ("x5t#S256", "x5c", "x5t#o", "sigX5ts")

_b64url_re = re.compile(r'^[A-Za-z0-9_-]+$')
_b64_re = re.compile(r'^[A-Za-z0-9=/+]+$')
_uri_re = re.compile(r'^(?:https?|ftp)://[^\s/$.?#].[^\s]*$')

COMMITMENTS = {
    'proof_of_origin': (
        "http://uri.etsi.org/01903/v1.2.2#ProofOfOrigin",
        "It indicates that the signer recognizes to have created, approved and sent the "
        "signed data."),
    'proof_of_receipt': (
        "http://uri.etsi.org/01903/v1.2.2#ProofOfReceipt",
        "It indicates that signer recognizes to have received the content of the signed data."),
    'proof_of_delivery': (
        "http://uri.etsi.org/01903/v1.2.2#ProofOfDelivery",
        "It indicates that the TSP providing that indication has delivered a signed data in a "
        "local store accessible to the recipient of the signed data."),
    'proof_of_sender': (
        "http://uri.etsi.org/01903/v1.2.2#ProofOfSender",
        "It indicates that the entity providing that indication has sent the signed data "
        "(but not necessarily created it)."),
    'proof_of_approval': (
        "http://uri.etsi.org/01903/v1.2.2#ProofOfApproval",
        "It indicates that the signer has approved the content of the signed data."),
    'proof_of_creation': (
        "http://uri.etsi.org/01903/v1.2.2#ProofOfCreation",
        "It indicates that the signer has created the signed data (but not necessarily "
        "approved, nor sent it)."),
}


def signing_time() -> str:
    """
    Current UTC time as an ISO 8601 string to the second with a trailing ``Z``, the
    format of the ``sigT`` header parameter

    :return: e.g. ``2024-06-30T13:21:00Z``
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def generate_commitments(**flags: bool) -> List[Dict[str, Any]]:
    """
    Build an ``srCms`` value (signer commitments, ETSI TS 119 182-1 section 5.2.3)

    >>> generate_commitments(proof_of_origin=True)[0]['commId']['id']
    'http://uri.etsi.org/01903/v1.2.2#ProofOfOrigin'

    :param flags: any of ``proof_of_origin``, ``proof_of_receipt``, ``proof_of_delivery``,
        ``proof_of_sender``, ``proof_of_approval``, ``proof_of_creation``
    :return: one ``commId`` entry per flag set to a true value
    """
    if unknown := sorted(set(flags) - set(COMMITMENTS)):
        raise tex.ArgumentError(f"Unknown commitment types: {', '.join(unknown)}")

    return [{'commId': {'id': uri, 'desc': desc}}
            for key, (uri, desc) in COMMITMENTS.items() if flags.get(key)]


def compute_crit(doc: Mapping) -> List[str]:
    return [param for param in CRIT_PARAMETERS if param in doc]


class Thumbprint(pydantic.BaseModel):
    """
    Value of ``x5t#o`` and item of ``sigX5ts``
    """

    digAlg: pydantic.StrictStr
    digVal: pydantic.StrictStr

    class Config:
        extra = pydantic.Extra.forbid

    @pydantic.validator('digVal')
    def _val_dig_val(cls, dig_val):
        if not _b64url_re.match(dig_val):
            raise ValueError("`digVal` needs to be a base64url string.")
        return dig_val


class ProtectedHeader(pydantic.BaseModel):
    """
    Pydantic Model to store, validate and serialize the JWS Protected Header of a JAdES
    signature.

    Field level rules are checked at construction, every broken rule being reported. The
    ``crit`` parameter is never stored: it is derived from the parameters present whenever
    the header is serialized.
    """

    alg: Optional[pydantic.StrictStr]
    cty: Optional[pydantic.StrictStr]
    kid: Optional[pydantic.StrictStr]

    x5u: Optional[pydantic.StrictStr]
    x5c: Optional[List[pydantic.StrictStr]]
    x5tS256: Optional[pydantic.StrictStr] = pydantic.Field(None, alias='x5t#S256')
    x5tO: Optional[Thumbprint] = pydantic.Field(None, alias='x5t#o')
    sigX5ts: Optional[List[Thumbprint]]

    # only present when the payload is detached. Its content is not interpreted here.
    sigD: Optional[Dict[str, Any]]

    sigPl: Optional[Dict[str, Any]]
    sigPId: Optional[Dict[str, Any]]
    srCms: Optional[List[Dict[str, Any]]]
    srAts: Optional[List[Dict[str, Any]]]

    # omitted only when explicitly given as None
    sigT: Optional[pydantic.StrictStr] = pydantic.Field(default_factory=signing_time)
    adoTst: Optional[Dict[str, Any]]

    b64: Optional[pydantic.StrictBool] = True

    class Config:
        allow_population_by_field_name = True
        extra = pydantic.Extra.forbid

    @pydantic.root_validator(pre=True)
    def _val_no_crit(cls, values):
        if 'crit' in values:
            raise ValueError("Invalid crit; it is computed from the header parameters "
                             "and cannot be supplied.")
        return values

    @pydantic.validator('alg')
    def _val_alg(cls, alg):
        if alg is None:
            return alg
        if alg not in [item.value for item in JWS.Algorithm]:
            raise ValueError(f"Invalid alg; {alg} is not supported.")
        return alg

    @pydantic.validator('kid')
    def _val_kid(cls, kid):
        if kid is None:
            return kid
        if not _b64url_re.match(kid):
            raise ValueError("Invalid kid; needs to be a base64url string.")
        return kid

    @pydantic.validator('x5u')
    def _val_x5u(cls, x5u):
        if x5u is None:
            return x5u
        if not _uri_re.match(x5u):
            raise ValueError("Invalid x5u; needs to be a valid URI.")
        return x5u

    @pydantic.validator('x5c')
    def _val_x5c(cls, x5c):
        if x5c is None:
            return x5c
        if len(x5c) == 0:
            raise ValueError("Invalid x5c; needs to be an array with at least one element.")
        if not all(_b64_re.match(cert) for cert in x5c):
            raise ValueError("Invalid x5c; needs to be an array of base64 strings.")
        return x5c

    @pydantic.validator('x5tS256')
    def _val_x5t_s256(cls, x5t):
        if x5t is None:
            return x5t
        if not _b64url_re.match(x5t):
            raise ValueError("Invalid x5tS256; needs to be a base64url string.")
        return x5t

    @pydantic.validator('sigX5ts')
    def _val_sig_x5ts(cls, sig_x5ts):
        if sig_x5ts is None:
            return sig_x5ts
        if len(sig_x5ts) < 2:
            raise ValueError("Invalid sigX5ts; needs to be an array with at least 2 elements.")
        return sig_x5ts

    @pydantic.root_validator
    def _val_jades(cls, values):
        errors = []

        if values.get('x5u') is not None and values.get('x5c') is not None:
            errors.append("Invalid x5u; needs to be null when x5c is not null.")

        if values.get('x5tS256') is not None and values.get('x5c') is not None:
            errors.append("Invalid x5tS256; needs to be null when x5c is not null.")

        # a reference that failed its own validation is missing from values
        if all(name in values and values[name] is None
               for name in ('x5tS256', 'x5c', 'x5tO', 'sigX5ts')):
            errors.append("Invalid JAdES signature; needs to have at least one of the following "
                          "header parameters in its JWS Protected Header: "
                          f"{', '.join(CERT_REFERENCES)}.")

        if values.get('sigD') is not None and values.get('cty') is not None:
            errors.append("Invalid cty; needs to be null when sigD is set.")

        if errors:
            raise ValueError(" ".join(errors))
        return values

    @classmethod
    def blank(cls) -> "ProtectedHeader":
        """
        Header without any parameter, built without validation. A :class:`Token` starts
        with it until real headers are attached.
        """
        return cls.construct(sigT=None, b64=None)

    def to_dict(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = self.dict(by_alias=True, exclude_none=True)
        if crit := compute_crit(doc):
            doc['crit'] = crit
        return doc

    def to_string(self) -> str:
        return conv.doc_to_b64(self.to_dict())

    @property
    def crit(self) -> List[str]:
        return compute_crit(self.dict(by_alias=True, exclude_none=True))

    @property
    def detached(self) -> bool:
        return self.sigD is not None

    def set_alg(self, alg: Union[str, JWS.Algorithm]) -> None:
        self.alg = JWS.get_algorithm(alg).value

    def set_detached(self, sig_d: Mapping) -> None:
        if not isinstance(sig_d, Mapping):
            raise tex.ValidationError("Invalid sigD; needs to be an object.")
        self.sigD = dict(sig_d)
        self.cty = None


class UnprotectedHeader:
    """
    The JWS Unprotected Header, only allowed in the JSON serialization. An empty mapping
    means no unprotected header at all.
    """

    __slots__ = ('_header',)

    def __init__(self, header: Optional[Mapping[str, Any]] = None):
        if header is None:
            header = {}
        if not isinstance(header, Mapping):
            raise tex.ArgumentError("Invalid unprotected headers; needs to be an object.")

        header = dict(header)
        if len(header) > 0:
            validate_unprotected(header)

        self._header: Optional[Dict[str, Any]] = header or None

    def __bool__(self) -> bool:
        return self._header is not None

    @property
    def headers(self) -> Dict[str, Any]:
        if self._header is None:
            raise tex.ArgumentError("Unprotected headers not set.")
        return dict(self._header)

    def to_string(self) -> str:
        return conv.doc_to_b64(self.headers)


def _pydantic_errors(ex: pydantic.ValidationError) -> List[str]:
    errors = []
    for err in ex.errors():
        loc = ".".join(str(part) for part in err['loc'] if part != '__root__')
        errors.append(f"{loc}: {err['msg']}" if loc else err['msg'])
    return errors


_auto_include = (
    ('auto_include_x5c', ('x5c',), generate_x5c),
    ('auto_include_x5t_s256', ('x5t#S256', 'x5tS256'), generate_x5t_s256),
)


def build_protected_header(options: Optional[Mapping[str, Any]] = None, *,
                           alg: Union[str, JWS.Algorithm],
                           cty: Optional[str] = None,
                           detached: bool = False,
                           certs: Optional[Sequence[cert_type]] = None) -> ProtectedHeader:
    """
    Assemble and validate a JAdES protected header.

    :param options: header parameters, under their JOSE names (``x5t#S256``, ``x5t#o``) or
        the ``x5tS256``/``x5tO`` aliases, plus the ``auto_include_x5c`` and
        ``auto_include_x5t_s256`` flags that fill the certificate references from ``certs``
    :param alg: signature algorithm, written to ``alg``
    :param cty: content type, a leading ``application/`` is dropped. Must be None for a
        detached payload
    :param detached: whether the payload will be detached, the only case ``sigD`` is allowed
    :param certs: certificate chain, leaf first. When given, ``kid`` defaults to the
        IssuerSerial of the leaf certificate in standard base64. That value may hold
        ``+``, ``/`` and ``=``, which a ``kid`` given in ``options`` may not: those
        must be base64url.

    :raises ValidationError: every broken header rule, at field level first, then against
        the JAdES protected header schema
    :raises UnsupportedAlgorithm: ``alg`` is outside the algorithm table
    :raises ArgumentError: malformed options
    """
    if options is None:
        options = {}
    if not isinstance(options, Mapping):
        raise tex.ArgumentError("Invalid protected headers; needs to be an object.")

    opts: Dict[str, Any] = dict(options)
    alg_name = JWS.get_algorithm(alg).value

    if not isinstance(detached, bool):
        raise tex.ArgumentError("Invalid detached; needs to be a boolean.")

    for name in ('alg', 'cty'):
        if name in opts:
            raise tex.ArgumentError(f"Invalid {name}; it is set from the signing arguments, "
                                    "not as a header option.")

    if cty is not None:
        if not isinstance(cty, str):
            raise tex.ValidationError("Invalid cty; needs to be a string.")
        if detached:
            raise tex.ValidationError("Invalid cty; needs to be null when detached is true.")
        if cty.startswith("application/"):
            cty = cty[len("application/"):]

    chain = load_chain(certs) if certs is not None else None

    for flag, names, generate in _auto_include:
        if not opts.pop(flag, False):
            continue
        if chain is None:
            raise tex.ArgumentError(f"Invalid {flag}; needs to be false when no certificates "
                                    "are given.")
        if any(opts.get(name) is not None for name in names):
            raise tex.ArgumentError(f"Invalid {flag}; needs to be false when {names[0]} "
                                    "is not null.")
        opts[names[0]] = generate(chain)

    try:
        header = ProtectedHeader(**opts, alg=alg_name, cty=cty)
    except pydantic.ValidationError as ex:
        raise tex.ValidationError(format_errors(_pydantic_errors(ex))) from ex

    if header.sigD is not None and not detached:
        raise tex.ValidationError("Invalid sigD; needs to be null when detached is false.")

    if header.kid is None and chain is not None:
        header.kid = generate_kid(chain[0])

    validate_protected(header.to_dict())

    return header


def build_unprotected_header(options: Optional[Mapping[str, Any]] = None
                             ) -> Optional[UnprotectedHeader]:
    """
    Validate the unprotected header parameters against the schema.

    :return: None when ``options`` is empty
    """
    header = UnprotectedHeader(options)
    return header if header else None


def check_disjoint(protected: ProtectedHeader, unprotected: Optional[UnprotectedHeader]):
    """
    RFC 7515 section 7.2.1: a parameter may only appear in one of the two headers
    """
    if not unprotected:
        return
    if shared := sorted(set(protected.to_dict()) & set(unprotected.headers)):
        raise tex.ValidationError(
            f"Invalid unprotected headers; already in the protected header: {', '.join(shared)}")
