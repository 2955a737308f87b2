import json
import logging
from pathlib import Path

import typer

import jades.exceptions as tex
from jades.certs import parse_certs
from jades.jades import sign as jades_sign
from jades.jws import load_private_key

app = typer.Typer(help="JAdES (ETSI TS 119 182-1) JSON Web Signatures")


@app.callback()
def callback(verbose: bool = typer.Option(False, "--verbose", "-v")):
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


@app.command()
def sign(payload_file: Path = typer.Argument(..., exists=True, dir_okay=False),
         key: Path = typer.Option(..., "--key", exists=True, dir_okay=False,
                                  help="PEM private key"),
         certs: Path = typer.Option(..., "--certs", exists=True, dir_okay=False,
                                    help="PEM certificate chain, signing certificate first"),
         alg: str = typer.Option("RS256", "--alg"),
         serialization: str = typer.Option("compact", "--serialization"),
         x5c: bool = typer.Option(True, "--x5c/--no-x5c",
                                  help="embed the chain, or only its x5t#S256 thumbprint")):
    """
    Sign the content of PAYLOAD_FILE and print the signature
    """
    options = {'auto_include_x5c': True} if x5c else {'auto_include_x5t_s256': True}

    try:
        token = jades_sign(payload_file.read_text(encoding="utf-8"),
                           load_private_key(key.read_bytes()), alg,
                           serialization=serialization,
                           protected_headers=options,
                           certs=parse_certs(certs.read_bytes()))
    except tex.JAdESException as ex:
        typer.echo(f"error: {ex}", err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(token, indent=2) if isinstance(token, dict) else token)


def main():
    app()


if __name__ == "__main__":
    main()
