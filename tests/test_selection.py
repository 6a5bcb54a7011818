"""Tests for phylodyn.selection (codon counting and dN/dS)."""

import math

import pytest

from phylodyn.models import DNDS_SENTINEL, SelectionClass
from phylodyn.phylogeny import build_tree, jukes_cantor
from phylodyn.selection import (
    GENETIC_CODE,
    CodonTally,
    classify_omega,
    codon_sites,
    dnds_ratio,
    estimate_selection,
    substitution_counts,
    translate_codon,
)
from phylodyn.selection.codons import SENSE_CODONS
from phylodyn.simulation import generate_demo_data

from .conftest import make_sequences


class TestCodons:
    """Tests for the standard genetic code helpers."""

    def test_table_size(self) -> None:
        assert len(GENETIC_CODE) == 64
        assert len(SENSE_CODONS) == 61

    @pytest.mark.parametrize(
        ("codon", "amino_acid"),
        [("ATG", "M"), ("atg", "M"), ("TAA", "*"), ("TGG", "W"), ("NNN", None), ("A-G", None)],
    )
    def test_translate(self, codon: str, amino_acid: str | None) -> None:
        assert translate_codon(codon) == amino_acid

    def test_methionine_has_no_synonymous_sites(self) -> None:
        assert codon_sites("ATG") == (0.0, 3.0)

    def test_glycine_fourfold_third_position(self) -> None:
        assert codon_sites("GGG") == pytest.approx((1.0, 2.0))

    def test_leucine_partial_degeneracy(self) -> None:
        # CTA at the first position and TTG at the third keep leucine.
        assert codon_sites("TTA") == pytest.approx((2 / 3, 7 / 3))

    def test_stop_has_no_sites(self) -> None:
        assert codon_sites("TAG") == (0.0, 0.0)

    def test_sites_sum_to_three(self) -> None:
        for codon in SENSE_CODONS:
            assert sum(codon_sites(codon)) == pytest.approx(3.0)

    def test_single_synonymous_change(self) -> None:
        assert substitution_counts("GGG", "GGA") == (1.0, 0.0)

    def test_single_nonsynonymous_change(self) -> None:
        assert substitution_counts("ATG", "ATA") == (0.0, 1.0)

    def test_two_changes_averaged(self) -> None:
        # GGG -> GCG -> GCA and GGG -> GGA -> GCA both give one of each.
        assert substitution_counts("GGG", "GCA") == pytest.approx((1.0, 1.0))

    def test_pathway_through_stop_skipped(self) -> None:
        # AGA -> TGA (stop) -> TGG is excluded, leaving AGA -> AGG -> TGG.
        assert substitution_counts("AGA", "TGG") == pytest.approx((1.0, 1.0))

    def test_identical(self) -> None:
        assert substitution_counts("AAA", "AAA") == (0.0, 0.0)


class TestDndsHelpers:
    """Tests for ratio and classification helpers."""

    def test_ratio(self) -> None:
        ratio, sentinel = dnds_ratio(2.0, 1.0, 10.0, 20.0)
        assert ratio == pytest.approx(0.25)
        assert not sentinel

    def test_ratio_without_synonymous_changes(self) -> None:
        assert dnds_ratio(0.0, 1.0, 10.0, 20.0) == (DNDS_SENTINEL, True)

    @pytest.mark.parametrize(
        ("omega", "expected"),
        [
            (0.2, SelectionClass.PURIFYING),
            (0.5, SelectionClass.NEUTRAL),
            (1.0, SelectionClass.NEUTRAL),
            (1.5, SelectionClass.NEUTRAL),
            (2.0, SelectionClass.POSITIVE),
        ],
    )
    def test_classify(self, omega: float, expected: SelectionClass) -> None:
        assert classify_omega(omega, has_substitutions=True) == expected

    def test_classify_without_substitutions(self) -> None:
        assert classify_omega(0.2, has_substitutions=False) == SelectionClass.UNKNOWN

    def test_tally(self) -> None:
        tally = CodonTally()
        tally.add("GGG", "GGA")
        tally.add("ATG", "ATG")
        assert tally.codons == 2
        assert tally.synonymous_substitutions == 1.0
        assert tally.nonsynonymous_substitutions == 0.0
        assert tally.synonymous_sites == pytest.approx(1.0)
        assert tally.has_substitutions


class TestEstimateSelection:
    """Tests for tree-wide dN/dS."""

    def test_identical_sequences_sentinel(self, identical_sequences) -> None:
        result = estimate_selection(build_tree(identical_sequences))
        assert result is not None
        assert result.tree_dnds == DNDS_SENTINEL
        assert result.is_sentinel
        assert result.classification == SelectionClass.UNKNOWN
        assert not math.isnan(result.tree_dnds)

    def test_only_synonymous_changes(self) -> None:
        sequences = make_sequences(["GGTGCTAAA", "GGCGCTAAA", "GGAGCTAAA"])
        result = estimate_selection(build_tree(sequences))
        assert result.synonymous_substitutions == pytest.approx(2.0)
        assert result.nonsynonymous_substitutions == 0.0
        assert result.tree_dnds == 0.0
        assert not result.is_sentinel
        assert result.classification == SelectionClass.PURIFYING
        assert result.codons_compared == 12

    def test_only_nonsynonymous_changes(self) -> None:
        result = estimate_selection(build_tree(make_sequences(["ATGAAA", "ATAAAA"])))
        assert result.nonsynonymous_substitutions == pytest.approx(1.0)
        assert result.tree_dnds == DNDS_SENTINEL
        assert result.is_sentinel
        assert result.classification == SelectionClass.POSITIVE

    def test_gapped_codons_skipped(self) -> None:
        result = estimate_selection(build_tree(make_sequences(["ATGAAA", "ATG---"])))
        assert result.codons_compared == 3

    def test_trailing_partial_codon_ignored(self) -> None:
        result = estimate_selection(build_tree(make_sequences(["ATGAA", "ATGAC"])))
        assert result.codons_compared == 2

    def test_too_short(self) -> None:
        assert estimate_selection(build_tree(make_sequences(["AC", "AG"]))) is None

    def test_all_ambiguous(self) -> None:
        assert estimate_selection(build_tree(make_sequences(["NNNNNN", "NNNNNN"]))) is None

    def test_demo_data(self, demo_sequences) -> None:
        tree = build_tree(demo_sequences)
        result = estimate_selection(tree)
        assert not result.is_sentinel
        assert math.isfinite(result.tree_dnds) and result.tree_dnds > 0
        assert len(result.branches) == len(tree) - 1
        assert {b.node_id for b in result.branches} == {
            n.id for i, n in enumerate(tree.nodes) if i != tree.root_index
        }
        # Codons that mutated into stops are skipped on their branch.
        assert 250.0 < result.synonymous_sites + result.nonsynonymous_sites <= 300.0 + 1e-9

    def test_windows(self, demo_sequences) -> None:
        result = estimate_selection(build_tree(demo_sequences), window_size=150)
        assert [(w.start, w.end) for w in result.windows] == [(0, 150), (150, 300)]
        for window in result.windows:
            assert window.dn >= 0 and window.ds >= 0
            assert math.isfinite(window.omega)

    def test_window_proportions_stay_below_saturation(self) -> None:
        sequences = generate_demo_data(n_sequences=40)
        result = estimate_selection(build_tree(sequences))
        assert len(result.windows) == 2
        for window in result.windows:
            assert 0.0 < window.ds < 0.5
            assert 0.0 < window.dn < 0.5
        assert not all(w.omega == 1.0 for w in result.windows)

    def test_window_pools_sites_over_branches(self) -> None:
        # Four branches with 7/3 synonymous sites each and two synonymous changes.
        sequences = make_sequences(["GGTGCTAAA", "GGCGCTAAA", "GGAGCTAAA"])
        result = estimate_selection(build_tree(sequences))
        (window,) = result.windows
        assert window.ds == pytest.approx(float(jukes_cantor(2 / (4 * 7 / 3))))
        assert window.dn == 0.0
        assert window.classification == SelectionClass.PURIFYING

    def test_window_rounded_to_codons(self, demo_sequences) -> None:
        result = estimate_selection(build_tree(demo_sequences), window_size=100)
        assert all(w.start % 99 == 0 for w in result.windows)
        assert result.windows[-1].end == 300

    def test_to_dict(self, demo_sequences) -> None:
        data = estimate_selection(build_tree(demo_sequences)).to_dict()
        assert data["classification"] in {c.value for c in SelectionClass}
        assert data["codons_compared"] > 0
