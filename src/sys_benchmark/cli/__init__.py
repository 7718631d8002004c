"""
Command-line interface for the system benchmark.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..core.config import BenchmarkConfig
from ..core.errors import CollaboratorUnavailable
from ..core.report import ALL_FEATURES, Collaborators, build_report, parse_features
from ..core.selector import supports_unified_gpu
from ..info.gpu import GpuInventory
from ..info.system import collect_host_facts
from .render import render_json, render_plain, write_output

app = typer.Typer(
    help="System Benchmark - CPU/GPU throughput plus host, battery and network facts"
)
console = Console()
err_console = Console(stderr=True)

DEFAULT_FEATURES = ",".join(f.value for f in ALL_FEATURES)


class OutputFormat(str, Enum):
    plain = "plain"
    json = "json"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.command()
def run(
    output_format: OutputFormat = typer.Option(
        OutputFormat.plain, "--format", "-f", help="Output format: plain or json"
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--output-file", "-o", help="Write the output to this file instead of stdout"
    ),
    features: str = typer.Option(
        DEFAULT_FEATURES,
        "--features",
        "-e",
        help="Comma-separated features to run: cpu, gpu, battery, network",
    ),
    cpu_iterations: int = typer.Option(
        BenchmarkConfig.cpu_iterations,
        "--cpu-iterations",
        min=1,
        envvar="SYS_BENCHMARK_CPU_ITERATIONS",
        help="Timed matmuls on the CPU",
    ),
    cpu_size: int = typer.Option(
        BenchmarkConfig.cpu_size,
        "--cpu-size",
        min=1,
        envvar="SYS_BENCHMARK_CPU_SIZE",
        help="CPU matrix dimension",
    ),
    gpu_iterations: int = typer.Option(
        BenchmarkConfig.gpu_iterations,
        "--gpu-iterations",
        min=1,
        envvar="SYS_BENCHMARK_GPU_ITERATIONS",
        help="Timed matmuls per GPU",
    ),
    gpu_size: int = typer.Option(
        BenchmarkConfig.gpu_size,
        "--gpu-size",
        min=1,
        envvar="SYS_BENCHMARK_GPU_SIZE",
        help="GPU matrix dimension",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Benchmark CPU/GPU throughput and report host facts."""
    _configure_logging(verbose)

    try:
        requested = parse_features(features)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="'--features'")

    config = BenchmarkConfig(
        cpu_iterations=cpu_iterations,
        cpu_size=cpu_size,
        gpu_iterations=gpu_iterations,
        gpu_size=gpu_size,
    )

    try:
        with GpuInventory() as inventory:
            report = build_report(requested, Collaborators(gpu_inventory=inventory), config)
    except KeyboardInterrupt:
        raise typer.Exit(130)

    if output_format == OutputFormat.json:
        text = render_json(report)
    else:
        text = render_plain(report)

    try:
        write_output(text, output_file)
    except OSError as e:
        rprint(f"[red]Error writing output: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def devices() -> None:
    """List the GPUs that would be benchmarked."""
    _configure_logging(False)

    try:
        host = collect_host_facts()
    except CollaboratorUnavailable:
        host = None

    if supports_unified_gpu(host):
        rprint("[cyan]Integrated GPU (MPS), benchmarked as a single device[/cyan]")
        return

    with GpuInventory() as inventory:
        gpus = inventory.list_devices()

    if not gpus:
        rprint("[yellow]No CUDA devices found[/yellow]")
        return

    table = Table(title="GPU Devices")
    table.add_column("Index", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Total (MB)", style="yellow")
    table.add_column("Free (MB)", style="magenta")
    table.add_column("Used (MB)", style="blue")

    for facts in gpus:
        table.add_row(
            str(facts.device.index),
            facts.name or "N/A",
            _mb(facts.total_memory),
            _mb(facts.free_memory),
            _mb(facts.used_memory),
        )

    console.print(table)


def _mb(value: Optional[int]) -> str:
    return f"{value / 1024**2:.0f}" if value is not None else "N/A"


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
