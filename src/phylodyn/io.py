"""Reading dated FASTA input and exporting analysis results."""

import json
import logging
from dataclasses import asdict
from pathlib import Path

import pandas as pd
from Bio import SeqIO

from .errors import InvalidSequenceError
from .models import DatedSequence, PhylodynamicsResult

logger = logging.getLogger(__name__)


def parse_dated_header(header: str, separator: str = "|") -> tuple[str, float]:
    """Split a FASTA id like ``sample_7|2019.25`` into (id, date).

    Raises:
        InvalidSequenceError: If the header has no parseable trailing date.
    """
    name, sep, date_field = header.rpartition(separator)
    if not sep or not name:
        raise InvalidSequenceError(f"Header {header!r} has no '{separator}date' suffix")
    try:
        return name, float(date_field)
    except ValueError as e:
        raise InvalidSequenceError(f"Cannot parse collection date in header {header!r}") from e


def read_dated_fasta(fasta_path: Path, separator: str = "|") -> list[DatedSequence]:
    """Load aligned sequences whose FASTA ids end with a decimal-year date."""
    sequences = []
    with open(fasta_path, encoding="utf-8") as handle:
        for record in SeqIO.parse(handle, "fasta"):
            name, date = parse_dated_header(record.id, separator)
            sequences.append(DatedSequence(id=name, sequence=str(record.seq), collection_date=date))
    logger.info(f"Loaded {len(sequences)} dated sequences from {fasta_path}")
    return sequences


def result_tables(result: PhylodynamicsResult) -> dict[str, pd.DataFrame]:
    """Tabular views of the populated result fields."""
    tree = result.tree
    tables = {
        "nodes": pd.DataFrame(
            [
                {
                    "node_id": node.id,
                    "is_leaf": node.is_leaf,
                    "height": node.height,
                    "parent_id": (
                        tree.nodes[tree.parent_of(i)].id if tree.parent_of(i) is not None else None
                    ),
                    "branch_length": tree.branch_length(i),
                    "collection_date": node.sequence.collection_date if node.sequence else None,
                }
                for i, node in enumerate(tree.nodes)
            ]
        )
    }
    if result.clock_regression is not None:
        tables["clock_residuals"] = pd.DataFrame(
            [asdict(point) for point in result.clock_regression.residuals]
        )
    if result.skyline is not None:
        tables["skyline"] = pd.DataFrame(
            [{**asdict(i), "duration": i.duration} for i in result.skyline.intervals],
            columns=["start_time", "end_time", "ne", "lineages", "duration"],
        )
    if result.selection is not None:
        tables["selection_branches"] = pd.DataFrame(
            [asdict(b) for b in result.selection.branches]
        )
        tables["selection_windows"] = pd.DataFrame(
            [{**asdict(w), "classification": w.classification.value} for w in result.selection.windows],
            columns=["start", "end", "dn", "ds", "omega", "classification"],
        )
    return tables


def write_result(
    result: PhylodynamicsResult,
    output_path: Path,
    prefix: str = "phylodynamics",
) -> dict[str, Path]:
    """Write the tree (Newick), a JSON summary and one TSV per table.

    Returns:
        Mapping of artifact name to written path.
    """
    output_path.mkdir(parents=True, exist_ok=True)
    written: dict[str, Path] = {}

    newick_path = output_path / f"{prefix}_tree.nwk"
    newick_path.write_text(result.tree.to_newick() + "\n", encoding="utf-8")
    written["tree"] = newick_path

    summary_path = output_path / f"{prefix}_summary.json"
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2)
    written["summary"] = summary_path

    for name, frame in result_tables(result).items():
        table_path = output_path / f"{prefix}_{name}.tsv"
        frame.to_csv(table_path, sep="\t", index=False)
        written[name] = table_path

    logger.info(f"Wrote {len(written)} result files to {output_path}")
    return written
