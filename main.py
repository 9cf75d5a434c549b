#!/usr/bin/env python3
"""
NFC JSON Tag - Main Entry Point
Command-line interface for storing small JSON objects on NFC tags
"""

import json
import sys

import click

from nfc_errors import NFCTagError
from nfc_logging import configure_logging
from session_registry import SessionRegistry
from tag_codec import MAX_PAYLOAD_BYTES
from tag_operations import read_payload, write_payload
from tag_reader import MockTagReader

VERSION = "1.0.0"


class Settings:
    def __init__(self, debug=False, simulate=False, reader_filter=None):
        self.debug = debug
        self.simulate = simulate
        self.reader_filter = reader_filter


def open_session(settings: Settings, start: bool = True):
    """
    Build the session registry and, unless simulating, the PC/SC handler.

    Simulation attaches an in-memory tag with a card already present.
    """
    registry = SessionRegistry()
    if settings.simulate:
        reader = MockTagReader()
        registry.on_attach(reader.name, reader)
        registry.on_card_present({"atr": "simulated"})
        return registry, None

    # Imported here so --simulate works on machines without PC/SC libraries
    from nfc_handler import NFCHandler

    handler = NFCHandler(registry, reader_filter=settings.reader_filter)
    if start:
        handler.start_monitoring()
    return registry, handler


def close_session(handler):
    if handler is not None:
        handler.stop_monitoring()


def wait_for_tag(registry: SessionRegistry, timeout: float):
    click.echo("📝 Present NFC tag to the reader...")
    if not registry.wait_for_card(timeout):
        click.echo("⏱️ TIMEOUT: No tag detected within timeout window", err=True)
        sys.exit(2)


def parse_payload_argument(payload: str) -> dict:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="PAYLOAD")
    if not isinstance(data, dict):
        raise click.BadParameter("must be a JSON object", param_hint="PAYLOAD")
    return data


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--debug', is_flag=True, envvar='NFC_TAG_DEBUG',
              help='Enable debug mode - logs block traffic and saves it to debug/ folder')
@click.option('--simulate', is_flag=True, envvar='NFC_TAG_SIMULATE',
              help='Use an in-memory tag instead of a PC/SC reader')
@click.option('--reader', 'reader_filter', envvar='NFC_TAG_READER', default=None,
              help='Only use readers whose name contains this text (e.g. ACR1252)')
@click.pass_context
def cli(ctx, version, debug, simulate, reader_filter):
    """
    NFC JSON Tag

    Store a JSON object of up to 180 bytes on an NTAG21x tag through an
    ACS ACR1252 (or any PC/SC) reader, and read it back.

    Without a command the terminal user interface is started.
    """
    if version:
        click.echo(f"NFC JSON Tag v{VERSION}")
        click.echo("Built for ACS ACR1252 USB NFC Reader/Writer")
        ctx.exit(0)

    ctx.obj = Settings(debug=debug, simulate=simulate, reader_filter=reader_filter)

    if ctx.invoked_subcommand is None:
        ctx.invoke(tui)


@cli.command()
@click.pass_obj
def tui(settings: Settings):
    """Launch the terminal user interface"""
    from nfc_tui import main as tui_main

    try:
        tui_main(settings)
    except KeyboardInterrupt:
        click.echo("\n👋 Goodbye!")


@cli.command()
@click.option('--host', envvar='NFC_TAG_HOST', default='127.0.0.1', show_default=True)
@click.option('--port', envvar='NFC_TAG_PORT', default=5000, type=int, show_default=True)
@click.option('--strict-reads', is_flag=True, envvar='NFC_TAG_STRICT_READS',
              help='Report reader faults during a read instead of treating them as end of data')
@click.pass_obj
def serve(settings: Settings, host, port, strict_reads):
    """Serve POST /nfcWrite and GET /nfcRead over HTTP"""
    from nfc_server import create_app

    configure_logging(settings.debug)
    registry, handler = open_session(settings)
    app = create_app(registry, strict_reads=strict_reads)
    try:
        app.run(host=host, port=port, threaded=True)
    finally:
        close_session(handler)


@cli.command()
@click.argument('payload')
@click.option('--timeout', default=30.0, type=float, show_default=True,
              help='Seconds to wait for a tag')
@click.pass_obj
def write(settings: Settings, payload, timeout):
    """Write PAYLOAD (a JSON object) to the next tag presented"""
    data = parse_payload_argument(payload)
    configure_logging(settings.debug)
    registry, handler = open_session(settings)
    try:
        wait_for_tag(registry, timeout)
        blocks = write_payload(registry, data)
        click.echo(f"✅ Data successfully written to NFC tag ({blocks} blocks)")
    except NFCTagError as e:
        click.echo(f"❌ {e.kind}: {e}", err=True)
        sys.exit(1)
    finally:
        close_session(handler)


@cli.command()
@click.option('--timeout', default=30.0, type=float, show_default=True,
              help='Seconds to wait for a tag')
@click.option('--strict-reads', is_flag=True, envvar='NFC_TAG_STRICT_READS',
              help='Report reader faults instead of treating them as end of data')
@click.pass_obj
def read(settings: Settings, timeout, strict_reads):
    """Read the JSON object stored on the next tag presented"""
    configure_logging(settings.debug)
    registry, handler = open_session(settings)
    try:
        wait_for_tag(registry, timeout)
        data = read_payload(registry, strict=strict_reads)
        click.echo(json.dumps(data, ensure_ascii=False))
    except NFCTagError as e:
        click.echo(f"❌ {e.kind}: {e}", err=True)
        sys.exit(1)
    finally:
        close_session(handler)


@cli.command()
@click.option('--wait', default=1.0, type=float, show_default=True,
              help='Seconds to let reader and card events arrive')
@click.pass_obj
def status(settings: Settings, wait):
    """Show the attached reader and whether a tag is present"""
    configure_logging(settings.debug)
    registry, handler = open_session(settings)
    try:
        if handler is not None:
            registry.wait_for_card(wait)
        snapshot = registry.snapshot()
    finally:
        close_session(handler)

    if snapshot["reader"] is None:
        click.echo("📡 Reader Status: Not Found ❌")
        return
    click.echo(f"📡 Reader Status: Connected ✅ ({snapshot['reader']})")
    if snapshot["card"] is None:
        click.echo("🏷️ Tag: none")
    else:
        click.echo(f"🏷️ Tag: present ({snapshot['card'].get('atr', '')})")
    click.echo(f"📦 Max payload: {MAX_PAYLOAD_BYTES} bytes")


def main():
    cli(prog_name="nfc-tag")


if __name__ == "__main__":
    main()
