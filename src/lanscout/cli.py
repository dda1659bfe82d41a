"""Command-line interface for lanscout."""

import asyncio
import json
import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from lanscout import __version__
from lanscout.config import ScanSettings, load_settings
from lanscout.errors import LanscoutError
from lanscout.executor import ScanExecutor
from lanscout.models import ScanResult
from lanscout.orchestrator import NetworkScanner
from lanscout.queue import ScanQueue
from lanscout.store import JobStore


console = Console()


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_scanner(settings: ScanSettings) -> NetworkScanner:
    """Wire the scanner and its collaborators from settings."""
    queue = ScanQueue(
        ScanExecutor(),
        JobStore(settings.job_store_path),
        name=settings.queue_name,
        health_interval=settings.health_interval,
    )
    return NetworkScanner(queue, settings)


def print_result(result: ScanResult, output_format: str = "pretty") -> None:
    """Print scan results."""
    if output_format == "json":
        console.print_json(json.dumps(result.to_dict()))
        return

    if not result.hosts:
        console.print("[yellow]No hosts found[/yellow]")
        return

    table = Table(title=f"Discovered Hosts ({len(result.hosts)} total)")
    table.add_column("IP", style="cyan")
    table.add_column("MAC")
    table.add_column("Vendor")
    table.add_column("Hostname")
    table.add_column("NetBIOS")
    table.add_column("OS")

    for host in sorted(result.hosts, key=lambda h: h.uid):
        table.add_row(
            host.uid,
            host.mac or "-",
            host.mac_vendor or "-",
            host.hostname or "-",
            host.nname or "-",
            host.os_match or "-",
        )
    console.print(table)

    if result.ports:
        console.print()
        ports = Table(title=f"Ports ({len(result.ports)} total)")
        ports.add_column("Host", style="cyan")
        ports.add_column("Port", justify="right")
        ports.add_column("Proto")
        ports.add_column("State")
        ports.add_column("Service")
        for port in result.ports:
            ports.add_row(port.host_id, str(port.portid), port.protocol or "-",
                          port.state or "-", port.service_name or "-")
        console.print(ports)


@click.group()
@click.version_option(version=__version__, prog_name="lanscout")
def main():
    """lanscout - deduplicated nmap scans for host and neighbor discovery."""
    pass


@main.command()
@click.argument("cidr")
@click.option("--slow", is_flag=True, help="NetBIOS sweep instead of fast host discovery")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.option("-c", "--config", "config_path", type=click.Path(exists=True), default=None,
              help="YAML settings file")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def scan(cidr: str, slow: bool, as_json: bool, config_path: Optional[str], verbose: bool):
    """Scan an IPv4 range for live hosts.

    Examples:

        lanscout scan 192.168.1.0/24

        lanscout scan 10.0.0.0/24 --slow --json
    """
    setup_logging(verbose)
    settings = load_settings(config_path)

    async def run_scan() -> ScanResult:
        async with build_scanner(settings) as scanner:
            return await scanner.scan(cidr, fast=not slow)

    try:
        if as_json:
            result = asyncio.run(run_scan())
        else:
            console.print(Panel.fit(
                f"[bold cyan]{'NETBIOS' if slow else 'FAST'} SCAN[/bold cyan]\n"
                f"[dim]Range: {cidr}[/dim]",
                border_style="cyan",
            ))
            with console.status("[bold blue]Scanning network..."):
                result = asyncio.run(run_scan())
    except LanscoutError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    print_result(result, "json" if as_json else "pretty")


@main.command()
@click.argument("address")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.option("-c", "--config", "config_path", type=click.Path(exists=True), default=None,
              help="YAML settings file")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def solicit(address: str, as_json: bool, config_path: Optional[str], verbose: bool):
    """Resolve the MAC address of an IPv6 neighbor.

    Example:

        lanscout solicit fe80::1
    """
    setup_logging(verbose)
    settings = load_settings(config_path)

    async def run_solicit() -> Optional[str]:
        async with build_scanner(settings) as scanner:
            return await scanner.neighbor_solicit(address)

    try:
        mac = asyncio.run(run_solicit())
    except LanscoutError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if as_json:
        console.print_json(json.dumps({"address": address, "mac": mac}))
    elif mac:
        console.print(f"[cyan]{address}[/cyan] is at [bold green]{mac}[/bold green]")
    else:
        console.print(f"[yellow]No MAC address found for {address}[/yellow]")


@main.command()
@click.option("-c", "--config", "config_path", type=click.Path(exists=True), default=None,
              help="YAML settings file")
def config(config_path: Optional[str]):
    """Show effective settings."""
    settings = load_settings(config_path)

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)


if __name__ == "__main__":
    main()
