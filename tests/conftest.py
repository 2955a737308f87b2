import os
from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest

from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization as ser
from cryptography.hazmat.primitives.asymmetric import rsa, ec

from jades.jws import JWS


def make_name(cn: str) -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "IT"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Bergamot Test"),
        x509.NameAttribute(NameOID.COMMON_NAME, cn),
    ])


def make_cert(subject: x509.Name, key, issuer: x509.Name = None, issuer_key=None,
              serial: int = None) -> x509.Certificate:
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer or subject)
        .public_key(key.public_key())
        .serial_number(serial or x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(issuer_key or key, hashes.SHA256())
    )


def pub_pem(key) -> str:
    return key.public_key().public_bytes(ser.Encoding.PEM,
                                         ser.PublicFormat.SubjectPublicKeyInfo).decode()


@pytest.fixture(scope="session")
def rsa_keys() -> Dict[int, rsa.RSAPrivateKey]:
    return {size: rsa.generate_private_key(65537, size) for size in (1024, 2048, 4096)}


@pytest.fixture(scope="session")
def ec_keys() -> Dict[str, ec.EllipticCurvePrivateKey]:
    return {alg: ec.generate_private_key(curve['curve']) for alg, curve in JWS.alg_to_curve.items()}


@pytest.fixture(scope="session")
def hmac_key() -> bytes:
    return os.urandom(32)


@pytest.fixture(scope="session")
def ca(rsa_keys):
    ca_key = rsa.generate_private_key(65537, 2048)
    return ca_key, make_cert(make_name("Bergamot Test CA"), ca_key)


@pytest.fixture(scope="session")
def rsa_chain(rsa_keys, ca) -> List[x509.Certificate]:
    ca_key, ca_cert = ca
    leaf = make_cert(make_name("RSA Signer"), rsa_keys[2048],
                     issuer=ca_cert.subject, issuer_key=ca_key)
    return [leaf, ca_cert]


@pytest.fixture(scope="session")
def ec_chains(ec_keys, ca) -> Dict[str, List[x509.Certificate]]:
    ca_key, ca_cert = ca
    return {
        alg: [make_cert(make_name(f"{alg} Signer"), key,
                        issuer=ca_cert.subject, issuer_key=ca_key), ca_cert]
        for alg, key in ec_keys.items()
    }
