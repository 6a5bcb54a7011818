"""Nucleotide bitmask encoding of aligned sequences.

Every symbol is encoded as a 4-bit mask (A=1, C=2, G=4, T=8). IUPAC ambiguity
codes map to the union of their bases; gaps and unknown symbols map to 15.
Only masks with a single bit set are considered resolved.
"""

import logging
from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from ..models import DatedSequence

logger = logging.getLogger(__name__)

BASES = "ACGT"
BASE_MASKS: tuple[int, ...] = (1, 2, 4, 8)
UNKNOWN_MASK = 15

_IUPAC_MASKS = {
    "A": 1,
    "C": 2,
    "G": 4,
    "T": 8,
    "U": 8,
    "M": 3,
    "R": 5,
    "W": 9,
    "S": 6,
    "Y": 10,
    "K": 12,
    "V": 7,
    "H": 11,
    "D": 13,
    "B": 14,
    "N": 15,
}

_ENCODE = np.full(256, UNKNOWN_MASK, dtype=np.uint8)
for _symbol, _mask in _IUPAC_MASKS.items():
    _ENCODE[ord(_symbol)] = _mask
    _ENCODE[ord(_symbol.lower())] = _mask

_DECODE = np.array(list("-ACMGRSVTWYHKDBN"))

_RESOLVED = np.zeros(16, dtype=bool)
_RESOLVED[list(BASE_MASKS)] = True

# mask -> 0..3 for resolved bases, -1 otherwise
MASK_TO_INDEX = np.full(16, -1, dtype=np.int8)
for _index, _mask in enumerate(BASE_MASKS):
    MASK_TO_INDEX[_mask] = _index


def common_length(sequences: Sequence[DatedSequence]) -> int:
    """Length of the shared prefix compared across all sequences."""
    return min(len(s.sequence) for s in sequences) if sequences else 0


def encode_sequence(sequence: str, length: int | None = None) -> NDArray[np.uint8]:
    """Encode a symbol string into nucleotide masks."""
    raw = sequence[:length] if length is not None else sequence
    symbols = np.frombuffer(raw.encode("ascii", errors="replace"), dtype=np.uint8)
    return _ENCODE[symbols]


def encode_alignment(sequences: Sequence[DatedSequence]) -> NDArray[np.uint8]:
    """Encode sequences into an (N, L) mask matrix over their common prefix."""
    length = common_length(sequences)
    if any(len(s.sequence) != length for s in sequences):
        logger.warning(
            f"Sequence lengths differ; comparing the common prefix of {length} positions"
        )
    matrix = np.empty((len(sequences), length), dtype=np.uint8)
    for row, record in enumerate(sequences):
        matrix[row] = encode_sequence(record.sequence, length)
    return matrix


def resolved_mask(codes: NDArray[np.uint8]) -> NDArray[np.bool_]:
    """Boolean array marking unambiguous bases."""
    return _RESOLVED[codes]


def decode(codes: NDArray[np.uint8]) -> str:
    """Convert masks back to IUPAC symbols."""
    return "".join(_DECODE[codes])
