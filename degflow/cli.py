"""
Command-line interface for DegFlow
"""

import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__, check_dependencies, get_info
from .config import Config, get_default_config, load_config, save_config
from .core import DegFlowAnalysis
from .data import load_count_matrix, write_table
from .differential import FilterManager
from .exceptions import DegFlowError
from .utils import setup_logging, validate_r_environment


class CLIContext:
    def __init__(self):
        self.config_file: Optional[Path] = None
        self.config: Optional[Config] = None
        self.verbose: bool = False
        self.quiet: bool = False

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.verbose else "WARNING" if self.quiet else "INFO"


def _fail(message: str, cli_ctx: CLIContext) -> None:
    click.echo(message, err=True)
    if cli_ctx.verbose:
        import traceback

        traceback.print_exc()
    sys.exit(1)


@click.group()
@click.version_option(__version__)
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Configuration file path"
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Enable quiet mode (minimal output)")
@click.pass_context
def main(ctx, config, verbose, quiet):
    """
    DegFlow: differential gene expression analysis for RNA-seq count matrices

    Loads counts and sample metadata, filters genes, fits DESeq2, annotates
    results with gene symbols and draws diagnostic plots.
    """
    cli_ctx = CLIContext()
    cli_ctx.verbose = verbose
    cli_ctx.quiet = quiet

    setup_logging(level=cli_ctx.log_level)

    if config:
        cli_ctx.config_file = Path(config)
        cli_ctx.config = load_config(cli_ctx.config_file)

    ctx.obj = cli_ctx


@main.command()
def info():
    """Show DegFlow package information"""

    info_data = get_info()

    click.echo("=" * 50)
    click.echo(f"DegFlow v{info_data['version']}")
    click.echo("=" * 50)
    click.echo(f"Description: {info_data['description']}")
    click.echo(f"Python version: {info_data['python_version']}")
    click.echo()

    click.echo("Available modules:")
    for module in info_data["modules"]:
        click.echo(f"  - {module}")
    click.echo()

    click.echo("Dependency status:")
    for dep, available in check_dependencies().items():
        status = "✓" if available else "✗"
        click.echo(f"  {status} {dep}")

    r_report = validate_r_environment()
    click.echo(f"R: {r_report['r_version'] or 'not available'}")
    for pkg, available in r_report["packages"].items():
        click.echo(f"  {'✓' if available else '✗'} {pkg}")


@main.command()
@click.argument("output_file", type=click.Path())
@click.option(
    "--format",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    help="Output format for configuration file",
)
def init_config(output_file, format):
    """Initialize a new DegFlow configuration file"""

    output_path = Path(output_file)

    if output_path.exists():
        if not click.confirm(f"File {output_path} already exists. Overwrite?"):
            click.echo("Configuration initialization cancelled.")
            return

    save_config(get_default_config(), output_path, format=format)

    click.echo(f"Configuration file created: {output_path}")
    click.echo("Edit this file to customize your analysis parameters.")


@main.command()
@click.argument("config_file", type=click.Path(exists=True))
def validate_config(config_file):
    """Validate a DegFlow configuration file"""

    from .config import validate_config as validate_config_func

    try:
        config = load_config(config_file)
    except (ValueError, TypeError) as e:
        click.echo(f"Could not load configuration: {e}", err=True)
        sys.exit(1)

    issues = validate_config_func(config)
    if issues:
        click.echo(f"Found {len(issues)} configuration issues:")
        for issue in issues:
            click.echo(f"  ✗ {issue}")
        sys.exit(1)

    click.echo("✓ Configuration is valid")


@main.command()
@click.option("--counts", type=click.Path(exists=True), help="Count matrix file")
@click.option("--metadata", type=click.Path(exists=True), help="Sample metadata file")
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.option("--no-plots", is_flag=True, help="Skip the diagnostic plots")
@click.pass_context
def run(ctx, counts, metadata, output, no_plots):
    """Run the complete DegFlow analysis pipeline"""

    cli_ctx = ctx.obj
    config = cli_ctx.config or get_default_config()

    if counts:
        config.counts_file = str(counts)
    if metadata:
        config.metadata_file = str(metadata)
    if output:
        config.output_dir = str(output)

    try:
        analysis = DegFlowAnalysis(config, log_level=cli_ctx.log_level)

        click.echo("Starting DegFlow analysis pipeline...")
        results = analysis.run_full_pipeline(make_plots=not no_plots)
    except (DegFlowError, OSError, ValueError) as e:
        _fail(f"Pipeline execution failed: {e}", cli_ctx)
        return

    total_time = analysis.get_execution_times().get("total", 0)
    click.echo(f"Analysis completed in {total_time:.2f} seconds")

    for name, result in results.items():
        click.echo(
            f"  ✓ {name}: {result.n_significant} significant "
            f"({result.n_up_regulated} up, {result.n_down_regulated} down)"
        )
        for label, path in result.output_files.items():
            click.echo(f"      {label}: {path}")


@main.command(name="filter")
@click.argument("counts", type=click.Path(exists=True))
@click.option("--min-total-count", type=float, help="Minimum total count per gene")
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.pass_context
def filter_counts(ctx, counts, min_total_count, output):
    """Filter a count matrix and write the result"""

    cli_ctx = ctx.obj
    config = cli_ctx.config or get_default_config()

    params = dict(config.filtering)
    if min_total_count is not None:
        params["min_total_count"] = min_total_count

    try:
        matrix = load_count_matrix(
            counts,
            id_column=config.input.get("gene_id_column"),
            drop_columns=config.input.get("drop_columns", ()),
            sep=config.input.get("sep", "\t"),
        )
        filtered = FilterManager(params).apply_filters(matrix)
    except (DegFlowError, OSError, ValueError) as e:
        _fail(f"Filtering failed: {e}", cli_ctx)
        return

    output_file = write_table(
        filtered,
        output or config.output_dir,
        config.project_name,
        config.version,
        "filtered_counts",
    )
    click.echo(
        f"Kept {filtered.shape[0]}/{matrix.shape[0]} genes and "
        f"{filtered.shape[1]}/{matrix.shape[1]} samples: {output_file}"
    )


if __name__ == "__main__":
    main()
