"""Diploid genotype-likelihood vector sizing and indexing.

Genotypes over ``n`` alleles are ordered (0,0), (0,1), (1,1), (0,2), (1,2),
(2,2), ... so the pair (i, j) with i <= j sits at ``j*(j+1)/2 + i``. This is the
VCF ordering for Number=G fields at ploidy 2.
"""

import math
from dataclasses import dataclass

from ..models import PLOIDY

DEFAULT_MAX_ALT_ALLELES = 6


def likelihood_count(allele_count: int) -> int:
    """Number of diploid genotypes over ``allele_count`` alleles."""
    if allele_count < 1:
        raise ValueError(f"allele_count must be >= 1, got {allele_count}")
    return allele_count * (allele_count + 1) // 2


def index_for_allele_pair(i: int, j: int) -> int:
    """Linear PL position of the unordered allele pair (i, j)."""
    if i < 0 or j < 0:
        raise ValueError(f"allele indices must be non-negative, got ({i}, {j})")
    if i > j:
        i, j = j, i
    return j * (j + 1) // 2 + i


def allele_pair_for_index(index: int, allele_count: int | None = None) -> tuple[int, int]:
    """Allele pair (i, j), i <= j, stored at linear PL position ``index``."""
    if index < 0:
        raise ValueError(f"likelihood index must be non-negative, got {index}")
    if allele_count is not None and index >= likelihood_count(allele_count):
        raise ValueError(
            f"likelihood index {index} out of range for {allele_count} alleles"
        )
    j = (math.isqrt(8 * index + 1) - 1) // 2
    i = index - j * (j + 1) // 2
    return i, j


class AllelePairIndexer:
    """Precomputed index <-> allele-pair maps for a fixed allele count."""

    def __init__(self, allele_count: int):
        self.allele_count = allele_count
        self.size = likelihood_count(allele_count)
        self._pairs = tuple(
            (i, j) for j in range(allele_count) for i in range(j + 1)
        )

    def pair_for_index(self, index: int) -> tuple[int, int]:
        if not 0 <= index < self.size:
            raise ValueError(
                f"likelihood index {index} out of range for {self.allele_count} alleles"
            )
        return self._pairs[index]

    def index_for_pair(self, i: int, j: int) -> int:
        if not (0 <= i < self.allele_count and 0 <= j < self.allele_count):
            raise ValueError(
                f"allele pair ({i}, {j}) out of range for {self.allele_count} alleles"
            )
        return index_for_allele_pair(i, j)

    def pairs(self) -> tuple[tuple[int, int], ...]:
        """All pairs in PL order."""
        return self._pairs

    def __repr__(self) -> str:
        return f"AllelePairIndexer(allele_count={self.allele_count})"


@dataclass(frozen=True)
class LikelihoodCalculatorCache:
    """Read-only sizes and indexers for allele counts up to ``max_alt_alleles + 1``.

    Built once per run and shared; counts above the cached range are computed
    on demand and never stored.
    """

    max_alt_alleles: int
    sizes: tuple[int, ...]
    indexers: tuple[AllelePairIndexer, ...]

    @classmethod
    def build(cls, max_alt_alleles: int = DEFAULT_MAX_ALT_ALLELES) -> "LikelihoodCalculatorCache":
        if max_alt_alleles < 1:
            raise ValueError(f"max_alt_alleles must be >= 1, got {max_alt_alleles}")
        counts = range(1, max_alt_alleles + 2)
        return cls(
            max_alt_alleles=max_alt_alleles,
            sizes=tuple(likelihood_count(n) for n in counts),
            indexers=tuple(AllelePairIndexer(n) for n in counts),
        )

    @property
    def ploidy(self) -> int:
        return PLOIDY

    @property
    def max_allele_count(self) -> int:
        return self.max_alt_alleles + 1

    def is_cached(self, allele_count: int) -> bool:
        return 1 <= allele_count <= self.max_allele_count

    def size(self, allele_count: int) -> int:
        if self.is_cached(allele_count):
            return self.sizes[allele_count - 1]
        return likelihood_count(allele_count)

    def indexer(self, allele_count: int) -> AllelePairIndexer:
        if self.is_cached(allele_count):
            return self.indexers[allele_count - 1]
        return AllelePairIndexer(allele_count)
