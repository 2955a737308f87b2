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
One call JAdES signing

This is a library that implements the signing side of ETSI TS 119 182-1:
https://www.etsi.org/deliver/etsi_ts/119100_119199/11918201/01.01.01_60/ts_11918201v010101p.pdf

"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Optional, Dict, Any, Union, Sequence

import jades.exceptions as tex

from jades.certs import cert_type
from jades.headers import build_protected_header, build_unprotected_header
from jades.jws import JWS, check_key_type
from jades.token import Token

logger = logging.getLogger(__name__)

SERIALIZATIONS = ("compact", "json")


def sign(payload: Any, key: Any,
         alg: Union[str, JWS.Algorithm] = "RS256", *,
         serialization: str = "compact",
         detached: bool = False,
         cty: Optional[str] = None,
         protected_headers: Optional[Mapping[str, Any]] = None,
         unprotected_headers: Optional[Mapping[str, Any]] = None,
         certs: Optional[Sequence[cert_type]] = None) -> Union[str, Dict[str, str]]:
    """
    Sign ``payload`` and return the JAdES signature

    :param payload: text, or a JSON serializable value
    :param key: RSA or EC private key, or the HMAC secret as bytes
    :param alg: signature algorithm, ``RS256`` by default
    :param serialization: ``compact`` (a string) or ``json`` (a dict with the ``protected``,
        ``header``, ``payload`` and ``signature`` members)
    :param detached: leave the payload out of the output. ``protected_headers`` must then
        hold ``sigD``
    :param cty: content type of the payload
    :param protected_headers: options of :func:`jades.headers.build_protected_header`.
        ``b64`` defaults to True
    :param unprotected_headers: unprotected header parameters, JSON serialization only
    :param certs: signing certificate chain, leaf first, used to derive ``kid`` and the
        ``auto_include_*`` references

    :raises ArgumentError: malformed arguments
    :raises KeyTypeError: the key cannot be used with ``alg``
    :raises UnsupportedAlgorithm: ``alg`` is not supported
    :raises ValidationError: the headers break a JAdES rule
    """

    token = Token(payload)

    check_key_type(alg, key)

    # ETSI TS 119 182-1 section 4 / RFC 7515 section 3
    if not isinstance(serialization, str) or serialization.lower() not in SERIALIZATIONS:
        raise tex.ArgumentError(
            f"Invalid serialization; needs to be one of: {', '.join(SERIALIZATIONS)}.")
    serialization = serialization.lower()

    if not isinstance(detached, bool):
        raise tex.ArgumentError("Invalid detached; needs to be a boolean.")

    protected = build_protected_header(protected_headers, alg=alg, cty=cty,
                                       detached=detached, certs=certs)
    unprotected = build_unprotected_header(unprotected_headers)

    # ETSI TS 119 182-1 section 5.3
    if serialization != "json" and unprotected is not None:
        raise tex.ArgumentError("Invalid unprotected headers; needs to be empty when the "
                                "serialization is not JSON.")

    token.set_protected_headers(protected)
    token.set_unprotected_headers(unprotected)

    if detached:
        token.set_detached_signature()

    token.sign(alg, key)

    logger.debug("produced %s%s JAdES signature", serialization,
                 " detached" if detached else "")

    if serialization == "json":
        return token.to_object()
    return token.to_string()
