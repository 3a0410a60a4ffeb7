"""Command-line interface for SpliceForge.

This module provides the main entry point for the spliceforge CLI tool.
It uses Click to define commands and rich for console output.

Commands:
    classify: Regulation calls for one or more quantification tables
    run: Full A5SS pipeline (geometry, phase, translation, integration)

Example:
    $ spliceforge --help
    $ spliceforge classify alt5prime.tsv --event-class alt5prime -o calls.tsv
    $ spliceforge run --a5ss alt5prime.tsv --gff annotation.gff3 \\
        --genome genome.fa --proteins pep.fa -o results/
"""

from pathlib import Path
from typing import Optional

import attrs
import click
from rich.console import Console

from spliceforge import __version__
from spliceforge.config import TRANSLATION_MODES, Config
from spliceforge.core.models import EventClass
from spliceforge.utils.logging import Timer, setup_logging

# Initialize rich console for pretty output
console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="spliceforge")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress non-error output.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML configuration file.",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write debug logs to this file.",
)
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    config_path: Optional[Path],
    log_file: Optional[Path],
) -> None:
    """SpliceForge: coding consequences of alternative 5' splice site events.

    SpliceForge calls regulated splicing events from per-junction
    quantification, models A5SS events as three exons, resolves their
    reading frame, translates both splice choices and integrates the
    resulting peptides into reference proteins.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    verbosity = 2 if verbose else 0 if quiet else 1
    setup_logging(verbosity=verbosity, log_file=log_file)

    try:
        ctx.obj["config"] = Config.load(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)


# =============================================================================
# classify command
# =============================================================================


@main.command()
@click.argument(
    "tables",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--event-class",
    "-c",
    type=click.Choice([c.value for c in EventClass]),
    required=True,
    help="Event class of the rows in every table.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Output regulation calls TSV.",
)
@click.pass_context
def classify(
    ctx: click.Context,
    tables: tuple[Path, ...],
    event_class: str,
    output: Path,
) -> None:
    """Call regulated events from quantification tables.

    \b
    An event is regulated when at least one of its perspectives is
    confidently changing and all perspectives agree on the size, sign
    balance and proportionality of the change.

    \b
    Examples:
        $ spliceforge classify alt5prime.tsv --event-class alt5prime -o calls.tsv
    """
    from spliceforge.core.pipeline import ReportWriter
    from spliceforge.core.regulation import EventClassifier
    from spliceforge.io.quant import read_junction_table

    config: Config = ctx.obj["config"]
    quiet = ctx.obj.get("quiet", False)

    try:
        records = []
        for table in tables:
            records.extend(read_junction_table(table, event_class))

        result = EventClassifier(config.regulation).classify(records)
        ReportWriter.write_regulation_tsv(result, output)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    if not quiet:
        console.print("")
        console.print("[bold]Regulation Summary:[/bold]")
        console.print(f"  Events called:         {len(result.calls):,}")
        console.print(f"  Regulated:             {result.n_regulated:,}")
        console.print(f"  Incomplete evidence:   {len(result.incomplete_events):,}")
        console.print("")
        console.print(f"[green]Wrote regulation calls:[/green] {output}")


# =============================================================================
# run command
# =============================================================================


@main.command()
@click.option(
    "--a5ss",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="A5SS per-junction quantification table.",
)
@click.option(
    "--gff",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Reference annotation GFF3 with CDS phases.",
)
@click.option(
    "--genome",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Reference genome FASTA file.",
)
@click.option(
    "--proteins",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Reference protein FASTA with gene ids in the headers.",
)
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    required=True,
    help="Output directory.",
)
@click.option(
    "--workers",
    "-j",
    type=int,
    default=None,
    help="Number of parallel workers [default: from config].",
)
@click.option(
    "--backend",
    type=click.Choice(["serial", "threads", "processes"]),
    default=None,
    help="Execution backend [default: from config].",
)
@click.option(
    "--mode",
    type=click.Choice(TRANSLATION_MODES),
    default=None,
    help="Translate the upstream exon with E2 (junction) or alone (exon).",
)
@click.pass_context
def run(
    ctx: click.Context,
    a5ss: Path,
    gff: Path,
    genome: Path,
    proteins: Path,
    output_dir: Path,
    workers: Optional[int],
    backend: Optional[str],
    mode: Optional[str],
) -> None:
    """Run the full A5SS pipeline.

    \b
    Steps performed:
    1. Call regulated events
    2. Build E1D/E1P/E2 exon models
    3. Move the upstream exon 5' boundary into frame
    4. Translate both splice choices
    5. Group events as shortened, elongated or disrupted
    6. Integrate peptides into reference isoforms

    \b
    Output files:
    - regulation.tsv: Regulation call per event
    - events.tsv: Geometry, phase, peptides and group per regulated event
    - integration.tsv: Alignment of each peptide against each isoform
    - edited_proteins.fa: Accepted edited proteins
    - summary.tsv: Outcome tallies

    \b
    Examples:
        $ spliceforge run --a5ss alt5prime.tsv --gff annotation.gff3 \\
            --genome genome.fa --proteins pep.fa -o results/ -j 8
    """
    from spliceforge.core.pipeline import A5SSPipeline, ReportWriter
    from spliceforge.io.fasta import GenomeAccessor, ProteinCatalog
    from spliceforge.io.gff import CodingExonCatalog
    from spliceforge.io.quant import read_junction_table

    config: Config = ctx.obj["config"]
    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)

    parallel = config.parallel
    if workers is not None:
        parallel = attrs.evolve(parallel, max_workers=workers)
    if backend is not None:
        parallel = attrs.evolve(parallel, backend=backend)
    elif workers is not None and workers > 1 and parallel.backend == "serial":
        parallel = attrs.evolve(parallel, backend="processes")
    translation = config.translation
    if mode is not None:
        translation = attrs.evolve(translation, mode=mode)
    config = attrs.evolve(config, parallel=parallel, translation=translation)

    if not quiet:
        console.print(f"[blue]A5SS table:[/blue] {a5ss}")
        console.print(f"[blue]Annotation:[/blue] {gff}")
        console.print(f"[blue]Genome:[/blue] {genome}")
        console.print(f"[blue]Proteins:[/blue] {proteins}")
        console.print(f"[blue]Output:[/blue] {output_dir}")

    try:
        records = read_junction_table(a5ss, EventClass.ALT5PRIME)
        coding_exons = CodingExonCatalog.from_gff(gff, config.annotation.gene_types)
        protein_catalog = ProteinCatalog.from_fasta(proteins)

        with GenomeAccessor(genome) as genome_accessor:
            pipeline = A5SSPipeline(
                genome=genome_accessor,
                coding_exons=coding_exons,
                proteins=protein_catalog,
                config=config,
            )
            with Timer("A5SS pipeline"):
                result = pipeline.run(records)

        output_dir.mkdir(parents=True, exist_ok=True)
        ReportWriter.write_regulation_tsv(result.regulation, output_dir / "regulation.tsv")
        ReportWriter.write_event_tsv(result.results, output_dir / "events.tsv")
        ReportWriter.write_integration_tsv(result.results, output_dir / "integration.tsv")
        ReportWriter.write_edited_proteins(result.results, output_dir / "edited_proteins.fa")
        ReportWriter.write_summary_tsv(result.summary, output_dir / "summary.tsv")

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if verbose:
            console.print_exception()
        raise SystemExit(1)

    if not quiet:
        console.print("")
        console.print(ReportWriter.format_summary(result.summary), markup=False)
        console.print("")
        console.print(f"[green]Wrote results:[/green] {output_dir}")


if __name__ == "__main__":
    main()
