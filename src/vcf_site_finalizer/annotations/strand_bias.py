"""Strand-bias statistics from a summed 4-entry SB table.

The SB table is ``[ref_fwd, ref_rev, alt_fwd, alt_rev]``; decoded as the 2x2
contingency table ``[[ref_fwd, ref_rev], [alt_fwd, alt_rev]]``.

- FS: Phred-scaled two-sided Fisher exact p-value, computed on a table scaled
  down to about 200 reads when it holds more than 400.
- SOR: symmetric odds ratio on the table with a pseudocount of 1 per cell.

Reference: Guo Y, et al. The effect of strand bias in Illumina short-read
sequencing data. BMC Genomics. 2012;13:666. DOI: 10.1186/1471-2164-13-666
"""

import math
from collections.abc import Sequence

from scipy.stats import fisher_exact

SB_TABLE_SIZE = 4
TARGET_TABLE_SIZE = 200.0
MIN_PVALUE = 1e-320
AUGMENTATION_CONSTANT = 1.0


def decode_sb_table(sb: Sequence[int]) -> list[list[int]]:
    """Turn a flat SB array into a 2x2 table (rows: ref, alt; columns: fwd, rev)."""
    if len(sb) != SB_TABLE_SIZE:
        raise ValueError(f"strand bias table must have {SB_TABLE_SIZE} entries, got {len(sb)}")
    return [[int(sb[0]), int(sb[1])], [int(sb[2]), int(sb[3])]]


def add_sb_tables(total: list[int], sb: Sequence[int]) -> None:
    """Add ``sb`` into ``total`` in place."""
    if len(sb) != len(total):
        raise ValueError(f"cannot add strand bias table of size {len(sb)} to size {len(total)}")
    for i, value in enumerate(sb):
        total[i] += int(value)


def normalize_contingency_table(table: list[list[int]]) -> list[list[int]]:
    """Scale a large table down to roughly TARGET_TABLE_SIZE total reads."""
    total = table[0][0] + table[0][1] + table[1][0] + table[1][1]
    if total <= TARGET_TABLE_SIZE * 2:
        return table
    factor = total / TARGET_TABLE_SIZE
    return [[int(cell / factor) for cell in row] for row in table]


def fisher_strand_pvalue(table: list[list[int]]) -> float:
    """Two-sided Fisher exact p-value of the normalized table."""
    normalized = normalize_contingency_table(table)
    _, pvalue = fisher_exact(normalized, alternative="two-sided")
    return float(pvalue)


def phred_scale_pvalue(pvalue: float) -> float:
    return abs(-10.0 * math.log10(max(pvalue, MIN_PVALUE)))


def fisher_strand_score(table: list[list[int]]) -> float:
    return phred_scale_pvalue(fisher_strand_pvalue(table))


def strand_odds_ratio(table: list[list[int]]) -> float:
    """Symmetric odds ratio test statistic (SOR)."""
    t = [[cell + AUGMENTATION_CONSTANT for cell in row] for row in table]
    ratio = (t[0][0] / t[0][1]) * (t[1][1] / t[1][0])
    ratio += (t[0][1] / t[0][0]) * (t[1][0] / t[1][1])
    ref_ratio = min(t[0][0], t[0][1]) / max(t[0][0], t[0][1])
    alt_ratio = min(t[1][0], t[1][1]) / max(t[1][0], t[1][1])
    return math.log(ratio) + math.log(ref_ratio) - math.log(alt_ratio)


def format_strand_stat(value: float) -> str:
    return f"{value:.3f}"
