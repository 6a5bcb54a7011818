"""Tests for phylodyn.io."""

import json
from pathlib import Path

import pandas as pd
import pytest

from phylodyn.errors import InvalidSequenceError
from phylodyn.io import parse_dated_header, read_dated_fasta, result_tables, write_result
from phylodyn.models import AnalysisOptions
from phylodyn.pipeline import analyze


@pytest.fixture
def fasta_file(tmp_path: Path) -> Path:
    path = tmp_path / "samples.fasta"
    path.write_text(
        ">sample_a|2019.5 collected in spring\nACGTAC\nGTAC\n"
        ">sample|b|2020.25\nACGTACGTAA\n"
        ">sample_c|2021\nACGAACGTAA\n"
    )
    return path


class TestReadDatedFasta:
    """Tests for dated FASTA input."""

    def test_reads_records(self, fasta_file: Path) -> None:
        sequences = read_dated_fasta(fasta_file)
        assert [s.id for s in sequences] == ["sample_a", "sample|b", "sample_c"]
        assert [s.collection_date for s in sequences] == [2019.5, 2020.25, 2021.0]
        assert sequences[0].sequence == "ACGTACGTAC"

    def test_missing_date(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.fasta"
        path.write_text(">sample_a\nACGT\n")
        with pytest.raises(InvalidSequenceError, match="date"):
            read_dated_fasta(path)

    @pytest.mark.parametrize("header", ["sample|spring", "|2020.0", "sample|"])
    def test_bad_headers(self, header: str) -> None:
        with pytest.raises(InvalidSequenceError):
            parse_dated_header(header)

    def test_custom_separator(self) -> None:
        assert parse_dated_header("sample_2019.5", separator="_") == ("sample", 2019.5)


class TestWriteResult:
    """Tests for result export."""

    def test_tables(self, demo_sequences) -> None:
        result = analyze(
            demo_sequences, AnalysisOptions(run_clock=True, run_skyline=True, run_selection=True)
        )
        tables = result_tables(result)
        assert set(tables) == {
            "nodes",
            "clock_residuals",
            "skyline",
            "selection_branches",
            "selection_windows",
        }
        assert len(tables["nodes"]) == len(result.tree)
        assert len(tables["clock_residuals"]) == len(demo_sequences)
        assert len(tables["skyline"]) == len(demo_sequences) - 1
        assert tables["nodes"]["parent_id"].isna().sum() == 1

    def test_tree_only_tables(self, demo_sequences) -> None:
        assert set(result_tables(analyze(demo_sequences))) == {"nodes"}

    def test_write(self, demo_sequences, tmp_path: Path) -> None:
        result = analyze(demo_sequences, AnalysisOptions(run_clock=True))
        written = write_result(result, tmp_path / "out", prefix="demo")

        assert written["tree"].read_text().strip() == result.tree.to_newick()
        summary = json.loads(written["summary"].read_text())
        assert summary["outcomes"]["clock"]["status"] == "computed"
        assert summary["skyline"] is None

        residuals = pd.read_csv(written["clock_residuals"], sep="\t")
        assert list(residuals.columns) == [
            "sequence_id",
            "observed",
            "expected",
            "fitted",
            "residual",
        ]
        assert all(path.name.startswith("demo_") for path in written.values())
