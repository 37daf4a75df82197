"""vcf-site-finalizer: finalize merged multi-sample gVCF sites."""

import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from . import __version__
from .config import ConfigValidationError, FinalizerConfig, build_config, load_config
from .models import MalformedSiteError
from .pipeline import finalize_vcf
from .vcf_parser import InvalidHeaderError


def version_callback(value: bool) -> None:
    if value:
        print(__version__)
        raise typer.Exit()


app = typer.Typer(
    name="vcf-site-finalizer",
    help="Re-genotype merged gVCF sites and finalize their site-level annotations",
)
console = Console()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version", callback=version_callback, is_eager=True, help="Show version and exit"
        ),
    ] = None,
) -> None:
    pass


def setup_logging(verbose: bool, quiet: bool, log_level: str = "INFO") -> None:
    """Configure logging based on verbosity flags."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("vcf_site_finalizer").setLevel(level)


def _resolve_config(
    config_file: Path | None,
    summarize_pls: bool | None,
    max_alt_alleles: int | None,
) -> FinalizerConfig:
    overrides: dict[str, Any] = {}
    if summarize_pls is not None:
        overrides["summarize_pls"] = summarize_pls
    if max_alt_alleles is not None:
        overrides["max_alt_alleles"] = max_alt_alleles

    if config_file:
        return load_config(config_file, overrides)
    return build_config(overrides)


@app.command()
def finalize(
    vcf_path: Path = typer.Argument(..., help="Merged multi-sample VCF (.vcf, .vcf.gz, .bcf)"),
    output: Path = typer.Option(
        ..., "--output", "-o", help="Output VCF with re-called genotypes"
    ),
    output_db: Annotated[
        Path | None,
        typer.Option("--output-db", help="Also write sites-only records with raw annotations"),
    ] = None,
    config_file: Annotated[
        Path | None, typer.Option("--config", "-c", help="TOML configuration file")
    ] = None,
    summarize_pls: Annotated[
        bool | None,
        typer.Option(
            "--summarize-pls/--full-pls",
            help="Replace PLs with RGQ/ABGQ/ALTGQ instead of re-calling genotypes",
        ),
    ] = None,
    max_alt_alleles: Annotated[
        int | None,
        typer.Option("--max-alt-alleles", help="Alternate alleles covered by the likelihood cache"),
    ] = None,
    log_file: Annotated[Path | None, typer.Option("--log", help="Write log to file")] = None,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-error output"),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show progress spinner"),
) -> None:
    """Finalize the sites of a merged VCF.

    Sites without a real alternate allele, without depth, or below the
    QUALapprox threshold are dropped. Every remaining site loses its
    <NON_REF> allele and gets re-called genotypes plus AC/AF/AN, FS, SOR, QD
    and MQ.
    """
    if not vcf_path.exists():
        console.print(f"[red]Error: VCF file not found: {vcf_path}[/red]")
        raise typer.Exit(1)

    try:
        config = _resolve_config(config_file, summarize_pls, max_alt_alleles)
    except (ConfigValidationError, FileNotFoundError) as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1) from None

    setup_logging(verbose, quiet, config.log_level)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        logging.getLogger("vcf_site_finalizer").addHandler(file_handler)

    try:
        if not quiet:
            console.print(f"Finalizing {vcf_path.name}...")

        if progress and not quiet:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress_bar:
                task = progress_bar.add_task("Finalizing sites...", total=None)

                def update_progress(processed: int, written: int) -> None:
                    progress_bar.update(
                        task, description=f"Processed {processed:,} sites, wrote {written:,}"
                    )

                result = finalize_vcf(
                    vcf_path, output, config, output_db, progress_callback=update_progress
                )
        else:
            result = finalize_vcf(vcf_path, output, config, output_db)

    except MalformedSiteError as e:
        console.print(f"[red]Malformed input: {e}[/red]")
        raise typer.Exit(1) from None
    except (InvalidHeaderError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    if not quiet:
        console.print(
            f"[green]✓[/green] Wrote {result['sites_written']:,} of "
            f"{result['sites_processed']:,} sites to {output}"
        )
        if result["sites_skipped"]:
            reasons = ", ".join(
                f"{reason}={count:,}" for reason, count in sorted(result["skip_reasons"].items())
            )
            console.print(f"  Skipped {result['sites_skipped']:,} sites ({reasons})")
        if output_db:
            console.print(f"  Sites-only output: {output_db}")


@app.command()
def doctor() -> None:
    """Check system dependencies.

    Verifies that all required dependencies are installed and
    provides installation instructions for any that are missing.
    """
    from .doctor import DependencyChecker

    console.print("\n[bold]vcf-site-finalizer System Check[/bold]")
    console.print("─" * 30)

    checker = DependencyChecker()
    results = checker.check_all()

    all_passed = True
    for result in results:
        if result.passed:
            version_str = f" ({result.version})" if result.version else ""
            console.print(f"[green]✓[/green] {result.name}{version_str}")
        else:
            all_passed = False
            console.print(f"[red]✗[/red] {result.name}")
            if result.message:
                console.print(f"    {result.message}")

    console.print()

    if all_passed:
        console.print("[green]All systems ready![/green]")
    else:
        console.print("[yellow]Some checks failed.[/yellow]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
