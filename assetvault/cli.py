"""CLI commands for assetvault."""

import asyncio
import logging
import mimetypes
from pathlib import Path

import click


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _guess_mime(path: Path, mime_type: str | None) -> str:
    return mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"


@click.group()
@click.version_option(package_name="assetvault")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
def cli(log_level):
    """assetvault - asset storage and media processing."""
    _configure_logging(log_level)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--prefix", default="assets", help="Key prefix")
@click.option("--mime-type", default=None, help="Override the detected MIME type")
def upload(path, prefix, mime_type):
    """Store a file and print its key."""
    from assetvault.config import get_settings
    from assetvault.lib.storage import create_storage_manager

    async def run():
        storage = create_storage_manager(get_settings().storage)
        try:
            return await storage.upload(path.read_bytes(), path.name, _guess_mime(path, mime_type), prefix=prefix)
        finally:
            await storage.close()

    result = asyncio.run(run())
    click.echo(f"key:      {result.file_key}")
    click.echo(f"backend:  {result.backend}")
    click.echo(f"size:     {result.size}")
    click.echo(f"checksum: {result.checksum}")
    click.echo(f"url:      {result.url}")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--prefix", default="assets", help="Key prefix")
@click.option("--mime-type", default=None, help="Override the detected MIME type")
def process(path, prefix, mime_type):
    """Upload a file and run the full processing pipeline on it."""
    from assetvault import service
    from assetvault.config import get_settings
    from assetvault.lib import observability
    from assetvault.lib.storage import create_storage_manager
    from assetvault.processing import InMemoryAssetStore, Orchestrator

    settings = get_settings()
    observability.configure(settings)

    async def run():
        storage = create_storage_manager(settings.storage)
        store = InMemoryAssetStore()
        try:
            async with Orchestrator(storage, store, settings.processing) as orchestrator:
                record = await service.ingest_asset(
                    storage,
                    store,
                    orchestrator,
                    path.read_bytes(),
                    path.name,
                    _guess_mime(path, mime_type),
                    prefix=prefix,
                    max_upload_size=settings.processing.max_upload_size,
                )
                await orchestrator.join()
            return record, await store.list_variants(record.id)
        finally:
            await storage.close()

    record, variants = asyncio.run(run())
    click.echo(f"asset:   {record.id}")
    click.echo(f"key:     {record.file_key} ({record.backend})")
    click.echo(f"state:   {record.state.value}")
    if record.error:
        click.echo(f"error:   {record.error}")
    for name, value in sorted(record.metadata.items()):
        click.echo(f"  {name}: {value}")
    for variant in variants:
        dims = f"{variant.width}x{variant.height}" if variant.width else "-"
        source = variant.job_type.value if variant.job_type else "-"
        click.echo(f"variant: {variant.variant_type:<14} {source:<13} {dims:<10} {variant.file_key}")
    for name, error in sorted(record.variant_errors.items()):
        click.echo(f"failed:  {name}: {error}", err=True)


@cli.command()
@click.argument("key")
@click.option("--expires-in", default=None, type=int, help="URL lifetime in seconds")
@click.option("--download", is_flag=True, help="Force a download instead of inline display")
@click.option("--filename", default=None, help="Download filename")
@click.option("--public", is_flag=True, help="Unauthenticated (share link) URL")
@click.option("--backend", type=click.Choice(["remote", "local"]), default=None)
def presign(key, expires_in, download, filename, public, backend):
    """Print a retrieval URL for a stored key."""
    from assetvault.config import get_settings
    from assetvault.lib.storage import PresignOptions, create_storage_manager

    settings = get_settings()
    options = PresignOptions(
        expires_in=expires_in or settings.storage.presign_expiry,
        force_download=download,
        download_filename=filename,
        public_access=public,
    )

    async def run():
        storage = create_storage_manager(settings.storage)
        try:
            return await storage.presign(key, options, backend=backend)
        finally:
            await storage.close()

    click.echo(asyncio.run(run()))


def main():
    cli()


if __name__ == "__main__":
    main()
