"""Drop the symbolic allele's tail from per-sample arrays.

Entries involving the symbolic allele always follow those of the real alleles
(it is the last allele), so a prefix copy keeps exactly the real-allele data.
"""

from collections.abc import Sequence


def _prefix(values: Sequence[int], keep: int, what: str) -> tuple[int, ...]:
    if keep < 0:
        raise ValueError(f"keep length must be non-negative, got {keep}")
    if len(values) < keep:
        raise ValueError(f"{what} has {len(values)} entries, need at least {keep}")
    return tuple(values[:keep])


def trim_likelihoods(pls: Sequence[int], keep_length: int) -> tuple[int, ...]:
    """First ``keep_length`` PL entries."""
    return _prefix(pls, keep_length, "likelihood vector")


def trim_depths(allele_depths: Sequence[int], keep_allele_count: int) -> tuple[int, ...]:
    """First ``keep_allele_count`` AD entries; reads for the symbolic allele are dropped."""
    return _prefix(allele_depths, keep_allele_count, "allele depth vector")
