"""Command-line interface for signgate.

Commands:
    signgate thumbprint CERT: Print the thumbprint of a certificate
    signgate inspect PACKAGE: Show a package's signers and whether they are known
    signgate status KEY: Show the persisted signing state of a package
    signgate registry add|remove|list: Administer the certificate registry
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from signgate.api import build_registry, build_state_store
from signgate.exceptions import PackageReadError
from signgate.infrastructure.config import ConfigError, ConfigProfile, load_config
from signgate.package import ZipSignedPackageReader
from signgate.stores.base import KnownCertificate, StoreError
from signgate.thumbprint import compute_thumbprint, load_certificate, normalize_thumbprint

app = typer.Typer(
    name="signgate",
    help="Package signature trust decisions for a software registry",
    add_completion=False,
    no_args_is_help=True,
)

registry_app = typer.Typer(
    name="registry",
    help="Certificate registry administration",
    no_args_is_help=True,
)
app.add_typer(registry_app, name="registry")

console = Console()


# =============================================================================
# Type Aliases
# =============================================================================

ConfigOpt = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Configuration directory"),
]

FormatOpt = Annotated[
    str,
    typer.Option("--format", "-f", help="Output format (console, json)"),
]


def _load(config_dir: Optional[Path]) -> ConfigProfile:
    try:
        return load_config(config_path=config_dir)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _read_certificate(path: Path):
    if not path.exists():
        typer.echo(f"Error: File not found: {path}", err=True)
        raise typer.Exit(1)
    try:
        return load_certificate(path.read_bytes())
    except ValueError as e:
        typer.echo(f"Error: Not a certificate: {path} ({e})", err=True)
        raise typer.Exit(1)


# =============================================================================
# Commands
# =============================================================================


@app.command(name="thumbprint")
def thumbprint_cmd(
    certificate: Annotated[Path, typer.Argument(help="PEM or DER certificate file")],
) -> None:
    """Print the SHA-256 thumbprint of a certificate."""
    typer.echo(compute_thumbprint(_read_certificate(certificate)))


@app.command(name="inspect")
def inspect_cmd(
    package: Annotated[Path, typer.Argument(help="Package archive")],
    config_dir: ConfigOpt = None,
    format: FormatOpt = "console",
) -> None:
    """Show a package's signer thumbprints and whether the registry knows them.

    No cryptographic verification is performed.
    """
    if not package.exists():
        typer.echo(f"Error: File not found: {package}", err=True)
        raise typer.Exit(1)

    config = _load(config_dir)
    try:
        known = build_registry(config).known_thumbprints()
        with open(package, "rb") as stream:
            reader = ZipSignedPackageReader(stream)
            signed = reader.is_signed()
            signatures = reader.get_signatures() if signed else ()
    except (PackageReadError, StoreError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    signers = [
        {
            "thumbprint": s.thumbprint,
            "subject": s.signer_certificate.subject.rfc4514_string(),
            "known": s.thumbprint in known,
        }
        for s in signatures
    ]

    if format == "json":
        typer.echo(json.dumps({"signed": signed, "signatures": signers}, indent=2))
        return

    if not signed:
        console.print(f"[bold]{package.name}[/bold] is [green]unsigned[/green]")
        return

    table = Table(title=f"Signatures of {package.name}", show_header=True, header_style="bold magenta")
    table.add_column("Thumbprint", style="cyan", no_wrap=True)
    table.add_column("Subject")
    table.add_column("Known?", justify="center")
    for signer in signers:
        mark = "[green]✓[/green]" if signer["known"] else "[red]✗[/red]"
        table.add_row(signer["thumbprint"], signer["subject"], mark)
    console.print(table)
    if len(signers) != 1:
        console.print(f"[red]Package carries {len(signers)} signatures; exactly one is accepted.[/red]")


@app.command(name="status")
def status_cmd(
    package_key: Annotated[int, typer.Argument(help="Package key")],
    config_dir: ConfigOpt = None,
    format: FormatOpt = "console",
) -> None:
    """Show the persisted signing state of a package."""
    config = _load(config_dir)
    try:
        state = build_state_store(config).get_status(package_key)
    except StoreError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if state is None:
        typer.echo(f"No signing state for package {package_key}", err=True)
        raise typer.Exit(1)

    if format == "json":
        typer.echo(json.dumps(state.to_dict(), indent=2))
    else:
        console.print(
            f"{state.package_id} {state.package_version} (key {state.package_key}): "
            f"[bold]{state.status.value}[/bold] at {state.updated_at.isoformat()}"
        )


# =============================================================================
# Registry Commands
# =============================================================================


@registry_app.command(name="add")
def registry_add_cmd(
    certificate: Annotated[Path, typer.Argument(help="PEM or DER certificate file")],
    owner: Annotated[
        Optional[str],
        typer.Option("--owner", help="Account that owns the certificate"),
    ] = None,
    config_dir: ConfigOpt = None,
) -> None:
    """Register a certificate as a trusted package signer."""
    cert = _read_certificate(certificate)
    thumbprint = compute_thumbprint(cert)
    metadata = {
        "subject": cert.subject.rfc4514_string(),
        "issuer": cert.issuer.rfc4514_string(),
        "not_after": cert.not_valid_after_utc.isoformat(),
    }
    if owner:
        metadata["owner"] = owner

    config = _load(config_dir)
    try:
        added = build_registry(config).add(KnownCertificate(thumbprint, metadata))
    except StoreError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if added:
        typer.echo(f"Registered {thumbprint}")
    else:
        typer.echo(f"Already registered: {thumbprint}")


@registry_app.command(name="remove")
def registry_remove_cmd(
    thumbprint: Annotated[str, typer.Argument(help="Certificate thumbprint")],
    config_dir: ConfigOpt = None,
) -> None:
    """Unregister a certificate."""
    try:
        thumbprint = normalize_thumbprint(thumbprint)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    config = _load(config_dir)
    try:
        removed = build_registry(config).remove(thumbprint)
    except StoreError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if not removed:
        typer.echo(f"Not registered: {thumbprint}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Removed {thumbprint}")


@registry_app.command(name="list")
def registry_list_cmd(
    config_dir: ConfigOpt = None,
    format: FormatOpt = "console",
) -> None:
    """List registered certificates."""
    config = _load(config_dir)
    try:
        certificates = sorted(build_registry(config).get_all(), key=lambda c: c.thumbprint)
    except StoreError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if format == "json":
        typer.echo(json.dumps([c.to_dict() for c in certificates], indent=2))
        return

    table = Table(title="Known certificates", show_header=True, header_style="bold magenta")
    table.add_column("Thumbprint", style="cyan", no_wrap=True)
    table.add_column("Subject")
    table.add_column("Owner")
    for c in certificates:
        table.add_row(c.thumbprint, c.metadata.get("subject", ""), c.metadata.get("owner", ""))
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
