import json

import pytest

from typer.testing import CliRunner

from cryptography.hazmat.primitives import serialization as ser

import jades.convert as conv
from jades.certs import generate_x5c, generate_x5t_s256
from jades.cli import app

runner = CliRunner()


@pytest.fixture
def files(tmp_path, rsa_keys, rsa_chain):
    payload = tmp_path / "payload.json"
    payload.write_text('{"message":"Hello, world!"}')

    key = tmp_path / "key.pem"
    key.write_bytes(rsa_keys[2048].private_bytes(ser.Encoding.PEM,
                                                 ser.PrivateFormat.TraditionalOpenSSL,
                                                 ser.NoEncryption()))

    certs = tmp_path / "certs.pem"
    certs.write_bytes(b''.join(cert.public_bytes(ser.Encoding.PEM) for cert in rsa_chain))

    return str(payload), str(key), str(certs)


def test_cli_sign(files, rsa_chain):
    payload, key, certs = files
    result = runner.invoke(app, ["sign", payload, "--key", key, "--certs", certs])

    assert result.exit_code == 0
    protected, body, _ = result.stdout.strip().split('.')
    assert conv.bytes_from_b64(body) == b'{"message":"Hello, world!"}'

    header = conv.doc_from_b64(protected)
    assert header['alg'] == "RS256"
    assert header['x5c'] == generate_x5c(rsa_chain)
    assert 'kid' in header


def test_cli_sign_json(files, rsa_chain):
    payload, key, certs = files
    result = runner.invoke(app, ["sign", payload, "--key", key, "--certs", certs,
                                 "--alg", "PS512", "--serialization", "json", "--no-x5c"])

    assert result.exit_code == 0
    doc = json.loads(result.stdout)
    header = conv.doc_from_b64(doc['protected'])
    assert header['alg'] == "PS512"
    assert header['x5t#S256'] == generate_x5t_s256(rsa_chain)
    assert 'x5c' not in header


def test_cli_sign_errors(files):
    payload, key, certs = files

    result = runner.invoke(app, ["sign", payload, "--key", key, "--certs", certs,
                                 "--alg", "ES256"])
    assert result.exit_code == 1

    result = runner.invoke(app, ["sign", payload, "--key", certs, "--certs", certs])
    assert result.exit_code == 1
