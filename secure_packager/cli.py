"""
Command-line interface for the secure packager.
"""

from __future__ import annotations

import logging
import warnings
from datetime import datetime, timezone
from pathlib import Path

import click

from secure_packager.common.config import EXPIRY_FORMAT, Config
from secure_packager.common.exceptions import LicenseWarning, PackagerError
from secure_packager.common.logging_utils import setup_logger
from secure_packager.keygen import KeyGenerator
from secure_packager.licensing.issuer import issue_token
from secure_packager.packaging.packager import pack
from secure_packager.packaging.unpacker import unpack
from secure_packager.server import start_server

_PATH = click.Path(path_type=Path)


def _parse_fake_now(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, EXPIRY_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as err:
        msg = f"invalid --fake-now {value!r}, expected YYYY-MM-DD"
        raise click.BadParameter(msg) from err


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:  # noqa: FBT001
    """Secure packager: envelope-encrypted file packages with license gating"""
    config = Config()
    setup_logger(
        logging.getLogger("secure_packager"),
        logging.DEBUG if verbose else config.LOG_LEVEL,
    )


@cli.command()
@click.option("--out-dir", default=None, type=_PATH, help="Directory to save keys")
@click.option("--name", default="customer", show_default=True, help="Key file prefix")
@click.option("--bits", default=None, type=int, help="RSA key size (default: 2048)")
def keygen(out_dir: Path | None, name: str, bits: int | None) -> None:
    """Generate an RSA key pair in canonical PEM form"""
    private_path, public_path = KeyGenerator(out_dir).generate_keys(name, bits)
    click.echo(f"Keys generated and saved: {private_path}, {public_path}")


@cli.command("pack")
@click.option("--in", "input_dir", required=True, type=_PATH, help="Input directory with files to encrypt")
@click.option("--out", "output_dir", required=True, type=_PATH, help="Output directory for the encrypted package")
@click.option("--pub", "public_key", required=True, type=_PATH, help="Recipient RSA public key (PEM)")
@click.option("--zip/--no-zip", "enable_zip", default=True, show_default=True, help="Build encrypted_files.zip")
@click.option("--cleanup/--no-cleanup", default=True, show_default=True, help="Keep only the zip after building it")
@click.option("--license", "enable_license", is_flag=True, help="Require a license token at unpack time")
@click.option("--vendor-pub", default=None, type=_PATH, help="Vendor public key (PEM) to embed when --license is set")
def pack_command(  # noqa: PLR0913
    input_dir: Path,
    output_dir: Path,
    public_key: Path,
    enable_zip: bool,  # noqa: FBT001
    cleanup: bool,  # noqa: FBT001
    enable_license: bool,  # noqa: FBT001
    vendor_pub: Path | None,
) -> None:
    """Encrypt a directory of files for one recipient"""
    try:
        result = pack(
            input_dir,
            output_dir,
            public_key,
            enable_zip=enable_zip,
            enable_license=enable_license,
            vendor_public_key_path=vendor_pub,
            cleanup=cleanup,
        )
    except PackagerError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Created {result}")


@cli.command("unpack")
@click.option("--zip", "archive_path", required=True, type=_PATH, help="Encrypted zip produced by pack")
@click.option("--priv", "private_key", required=True, type=_PATH, help="Recipient RSA private key (PEM)")
@click.option("--out", "output_dir", default=None, type=_PATH, help="Output directory (default: ./decrypted)")
@click.option("--license-token", default=None, type=_PATH, help="Vendor license token path")
@click.option("--vendor-pub", default=None, type=_PATH, help="Vendor public key (PEM); overrides the embedded one")
@click.option("--fake-now", envvar="FAKE_NOW", default=None, help="Testing only: date (YYYY-MM-DD) used for the expiry check")
def unpack_command(  # noqa: PLR0913
    archive_path: Path,
    private_key: Path,
    output_dir: Path | None,
    license_token: Path | None,
    vendor_pub: Path | None,
    fake_now: str | None,
) -> None:
    """Verify the license, unwrap the key and decrypt a package"""
    now = _parse_fake_now(fake_now)
    output_dir = output_dir or Config().DEFAULT_OUTPUT_DIR
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", LicenseWarning)
            result = unpack(
                archive_path,
                private_key,
                output_dir,
                license_token_path=license_token,
                vendor_public_key_path=vendor_pub,
                now=now,
            )
    except PackagerError as e:
        raise click.ClickException(str(e)) from e

    status = result.license_status
    if status is not None:
        click.echo("License Information:")
        click.echo(f"   Company: {status.company}")
        click.echo(f"   Email: {status.email}")
        click.echo(f"   Expires: {status.expiry.isoformat()}")
        if status.warning:
            for w in caught:
                click.echo(f"WARNING: {w.message}", err=True)
        else:
            click.echo(
                f"Access valid for {status.remaining_days} more days "
                f"(expires {status.expiry.isoformat()})."
            )
    for path in result.files:
        click.echo(f"Decrypted {path}")


@cli.command("issue-token")
@click.option("--priv", "private_key", required=True, type=_PATH, help="Vendor RSA private key (PEM)")
@click.option("--expiry", required=True, help="Expiry date YYYY-MM-DD")
@click.option("--company", required=True, help="Company name")
@click.option("--email", required=True, help="Email address")
@click.option("--out", "output_path", default=None, type=_PATH, help="Output token path (default: token.txt)")
def issue_token_command(
    private_key: Path,
    expiry: str,
    company: str,
    email: str,
    output_path: Path | None,
) -> None:
    """Issue a vendor-signed license token"""
    output_path = output_path or Config().DEFAULT_TOKEN_PATH
    try:
        token_path = issue_token(private_key, expiry, company, email, output_path)
    except PackagerError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Token issued -> {token_path}")


@cli.command()
@click.option("--host", default=None, help="Host to bind to (default: SECURE_PACKAGER_SERVER_HOST or 127.0.0.1)")
@click.option("--port", default=None, type=int, help="Port to bind to (default: SECURE_PACKAGER_SERVER_PORT or 8000)")
def serve(host: str | None, port: int | None) -> None:
    """Start the packager HTTP service"""
    start_server(Config(), host=host, port=port)


if __name__ == "__main__":
    cli()
