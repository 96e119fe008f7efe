from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .batch import CA_NAME, issue_all
from .config.loader import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH, Config, load_config
from .core.chain import common_name, verify_certificate_chain
from .core.errors import CertError, ChainError, ConfigError, IssuanceError
from .core.issuance import create_ca_cert, create_cert
from .storage.files import read_material_file, write_material

app = typer.Typer(
    help="tlscert issues X.509 certificate authorities and certificates from a YAML "
         "description, and verifies certificate chains.",
)
create_app = typer.Typer(help="Create keys and certificates.")
app.add_typer(create_app, name="create")


class _State:
    config_path: Optional[str] = None

    def config(self) -> Config:
        return load_config(self.config_path)


def _state(ctx: typer.Context) -> _State:
    return ctx.ensure_object(_State)


def _fail(message: str) -> None:
    typer.echo(f"ERROR: {message}", err=True)
    raise typer.Exit(code=1)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None, "-c", "--config", envvar=CONFIG_ENV_VAR,
        help=f"Config file (default is {DEFAULT_CONFIG_PATH})",
    ),
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="Increase log output (-vv for debug)"),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Only log errors"),
):
    """Global options shared by every command."""
    log_level = logging.WARNING
    if quiet:
        log_level = logging.ERROR
    elif verbose >= 2:
        log_level = logging.DEBUG
    elif verbose == 1:
        log_level = logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    _state(ctx).config_path = config


# ============================================================================
# Issuance
# ============================================================================

@create_app.command("ca")
def create_ca(
    ctx: typer.Context,
    key_out: str = typer.Option("ca.key", "--key-out", help="Destination of the CA private key"),
    cert_out: str = typer.Option("ca.crt", "--cert-out", help="Destination of the CA certificate"),
):
    """Create the certificate authority described under `caCert`."""
    try:
        spec = _state(ctx).config().ca_cert
    except ConfigError as e:
        _fail(str(e))

    try:
        material = create_ca_cert(spec)
        write_material(material, key_out, cert_out)
    except CertError as e:
        _fail(str(IssuanceError(CA_NAME, spec.subject.common_name, e)))

    typer.echo(f"[OK] CA certificate {spec.subject.common_name!r} written to {cert_out} (key: {key_out})")


@create_app.command("cert")
def create_leaf(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", "-n", help="Name of the cert under `certs` in the config"),
    key_out: str = typer.Option("", "--key-out", help="Destination of the private key (default <name>.key)"),
    cert_out: str = typer.Option("", "--cert-out", help="Destination of the certificate (default <name>.crt)"),
    ca_key: str = typer.Option("ca.key", "--ca-key", help="CA private key (PEM)"),
    ca_cert: str = typer.Option("ca.crt", "--ca-cert", help="CA certificate (PEM)"),
):
    """Create one certificate from the config, signed by an existing CA."""
    try:
        spec = _state(ctx).config().leaf(name)
        ca_key_pem = read_material_file(ca_key)
        ca_cert_pem = read_material_file(ca_cert)
    except CertError as e:
        _fail(str(e))

    key_path = key_out or f"{name}.key"
    cert_path = cert_out or f"{name}.crt"
    try:
        material = create_cert(spec, ca_key_pem, ca_cert_pem)
        write_material(material, key_path, cert_path)
    except CertError as e:
        _fail(str(IssuanceError(name, spec.subject.common_name, e)))

    typer.echo(f"[OK] certificate {name!r} written to {cert_path} (key: {key_path})")


@create_app.command("all")
def create_all(
    ctx: typer.Context,
    out_dir: str = typer.Option(".", "--out-dir", "-o", help="Directory for all keys and certificates"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Parallel leaf issuance"),
):
    """Create the CA and every configured certificate in one go."""
    try:
        config = _state(ctx).config()
        result = issue_all(config, max_workers=workers)
    except CertError as e:
        _fail(str(e))

    out = Path(out_dir)
    try:
        write_material(result.ca, out / f"{CA_NAME}.key", out / f"{CA_NAME}.crt")
        for name, material in sorted(result.certs.items()):
            write_material(material, out / f"{name}.key", out / f"{name}.crt")
            typer.echo(f"[OK] {name}")
    except CertError as e:
        _fail(str(e))

    for name, err in sorted(result.failures.items()):
        typer.echo(f"[FAIL] {err}", err=True)
    if not result.ok:
        raise typer.Exit(code=1)


# ============================================================================
# Verification
# ============================================================================

@app.command("verify")
def verify(
    cert: str = typer.Option(..., "--cert", help="Certificate to verify (PEM)"),
    ca_cert: str = typer.Option("ca.crt", "--ca-cert", help="Trusted CA certificate(s) (PEM)"),
):
    """Verify that a certificate was signed by a trusted CA."""
    try:
        cert_pem = read_material_file(cert)
        ca_pem = read_material_file(ca_cert)
    except CertError as e:
        _fail(str(e))

    try:
        result = verify_certificate_chain(cert_pem, ca_pem)
    except ChainError as e:
        typer.echo(f"[FAIL] {cert}: {e.reason}" + (f" ({e.detail})" if e.detail else ""), err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[OK] {cert} ({common_name(result.leaf.subject)}) chains to a trusted CA")
    for line in result.describe():
        typer.echo(f"  {line}")


@app.command("show")
def show(ctx: typer.Context):
    """Print a summary of the loaded configuration."""
    try:
        config = _state(ctx).config()
    except ConfigError as e:
        _fail(str(e))

    ca = config.ca_cert
    typer.echo(f"Config: {config.path}")
    typer.echo(f"CA: {ca.subject.common_name} (serial {ca.serial}, {ca.valid_for_years}y)")
    for name, spec in sorted(config.certs.items()):
        dns = ", ".join(d for d in spec.dns_names if d) or "-"
        typer.echo(f"  * {name}: {spec.subject.common_name} (serial {spec.serial}, "
                   f"{spec.valid_for_years}y) dns: {dns}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
