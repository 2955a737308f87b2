import json

import pytest

from jose import jws as jose_jws

import jades
import jades.convert as conv
import jades.exceptions as tex
from jades.certs import generate_x5c

from conftest import pub_pem

payload = {"message": "Hello, world!"}


@pytest.mark.parametrize("alg", ["RS256", "RS384", "RS512"])
def test_sign_rsa(alg, rsa_keys, rsa_chain):
    jwt = jades.sign(payload, rsa_keys[2048], alg,
                     protected_headers={'x5c': generate_x5c(rsa_chain), 'sigT': None})

    assert json.loads(jose_jws.verify(jwt, pub_pem(rsa_keys[2048]), algorithms=[alg])) \
           == payload

    header = jose_jws.get_unverified_header(jwt)
    assert header['alg'] == alg
    assert header['crit'] == ["b64"]
    assert 'sigT' not in header
    assert 'kid' not in header


@pytest.mark.parametrize("alg", ["ES256", "ES384", "ES512"])
def test_sign_ec(alg, ec_keys, ec_chains):
    jwt = jades.sign(payload, ec_keys[alg], alg,
                     protected_headers={'x5c': generate_x5c(ec_chains[alg])},
                     certs=ec_chains[alg])

    header = conv.doc_from_b64(jwt.split('.')[0])
    assert header['alg'] == alg
    assert header['kid'] == jades.generate_kid(ec_chains[alg][0])

    if alg == "ES256":
        assert json.loads(jose_jws.verify(jwt, pub_pem(ec_keys[alg]), algorithms=[alg])) \
               == payload


def test_sign_default_alg(rsa_keys, rsa_chain):
    jwt = jades.sign("Hello", rsa_keys[2048], protected_headers={'auto_include_x5c': True},
                     certs=rsa_chain)
    assert jose_jws.verify(jwt, pub_pem(rsa_keys[2048]), algorithms=["RS256"]) == b"Hello"


def test_sign_hmac(hmac_key, rsa_chain):
    jwt = jades.sign(payload, hmac_key, "HS512",
                     protected_headers={'auto_include_x5t_s256': True}, certs=rsa_chain)
    assert json.loads(jose_jws.verify(jwt, hmac_key, algorithms=["HS512"])) == payload


def test_sign_json(rsa_keys, rsa_chain):
    doc = jades.sign(payload, rsa_keys[2048], "PS256", serialization="JSON",
                     protected_headers={'auto_include_x5c': True},
                     unprotected_headers={'etsiU': [{'sigTst': {'tstTokens': []}}]},
                     certs=rsa_chain)

    assert list(doc) == ['protected', 'header', 'payload', 'signature']
    assert conv.doc_from_b64(doc['header']) == {'etsiU': [{'sigTst': {'tstTokens': []}}]}
    assert json.loads(conv.bytes_from_b64(doc['payload'])) == payload

    doc = jades.sign(payload, rsa_keys[2048], "PS256", serialization="json",
                     protected_headers={'auto_include_x5c': True}, certs=rsa_chain)
    assert 'header' not in doc


def test_sign_detached(rsa_keys, rsa_chain):
    sig_d = {'mId': "http://uri.etsi.org/19182/ObjectIdByURI", 'pars': ["urn:doc:1"]}

    jwt = jades.sign(payload, rsa_keys[2048], detached=True,
                     protected_headers={'auto_include_x5c': True, 'sigD': sig_d},
                     certs=rsa_chain)
    protected, body, _ = jwt.split('.')
    assert body == ""
    assert conv.doc_from_b64(protected)['sigD'] == sig_d

    with pytest.raises(tex.ValidationError, match="sigD"):
        jades.sign(payload, rsa_keys[2048], detached=True,
                   protected_headers={'auto_include_x5c': True}, certs=rsa_chain)


def test_sign_cty(rsa_keys, rsa_chain):
    jwt = jades.sign(payload, rsa_keys[2048], cty="application/json",
                     protected_headers={'auto_include_x5c': True}, certs=rsa_chain)
    assert conv.doc_from_b64(jwt.split('.')[0])['cty'] == "json"


def test_sign_key_checked_first(ec_keys):
    # the key is checked before the (invalid) headers
    with pytest.raises(tex.KeyTypeError):
        jades.sign(payload, ec_keys['ES256'], "ES512", protected_headers={'kid': "+"})

    with pytest.raises(tex.UnsupportedAlgorithm):
        jades.sign(payload, ec_keys['ES256'], "ES256K")


@pytest.mark.parametrize("kwargs", [
    {'serialization': "xml"},
    {'serialization': None},
    {'detached': 1},
    {'unprotected_headers': {'etsiU': ["abc"]}},
    {'protected_headers': ["x5c"]},
])
def test_sign_invalid_arguments(kwargs, rsa_keys, rsa_chain):
    kwargs.setdefault('protected_headers', {'auto_include_x5c': True})
    with pytest.raises(tex.ArgumentError):
        jades.sign(payload, rsa_keys[2048], certs=rsa_chain, **kwargs)


def test_sign_invalid_headers(rsa_keys):
    with pytest.raises(tex.ValidationError) as exc_info:
        jades.sign(payload, rsa_keys[2048], protected_headers={'kid': "a+b"})

    message = str(exc_info.value)
    assert message.startswith("Invalid JOSE headers;")
    assert "kid" in message
    assert "at least one of" in message


def test_sign_invalid_payload(rsa_keys):
    with pytest.raises(tex.ArgumentError):
        jades.sign(object(), rsa_keys[2048])
