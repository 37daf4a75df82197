"""Maximum-likelihood diploid genotype calls from likelihood vectors.

Likelihoods here are log10-scaled (higher is better); PLs convert with
``-PL / 10``. Genotype quality is the phred-scaled gap between the best and the
next-best genotype, matching GATK GQ semantics.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass

from ..models import Allele, no_call_alleles
from .likelihoods import LikelihoodCalculatorCache

SUM_GL_THRESH_NOCALL = -0.1


@dataclass(frozen=True)
class GenotypeCall:
    """Called allele pair and its quality (None when not assigned)."""

    alleles: tuple[Allele, Allele]
    quality: int | None = None
    likelihood_index: int | None = None

    @property
    def is_no_call(self) -> bool:
        return self.likelihood_index is None


def java_round(value: float) -> int:
    """Round half up, as java.lang.Math.round does."""
    return int(math.floor(value + 0.5))


def pls_to_log10_likelihoods(pls: Sequence[int]) -> list[float]:
    return [pl / -10.0 for pl in pls]


def is_informative(log10_likelihoods: Sequence[float] | None) -> bool:
    """A vector carries information only if its entries sum below -0.1."""
    if not log10_likelihoods:
        return False
    return sum(log10_likelihoods) < SUM_GL_THRESH_NOCALL


def max_element_index(values: Sequence[float]) -> int:
    """Index of the maximum; the first occurrence wins ties."""
    best = 0
    for i in range(1, len(values)):
        if values[i] > values[best]:
            best = i
    return best


def second_smallest_minus_smallest(values: Sequence[int], default: int = 0) -> int:
    """Gap between the two smallest entries, ``default`` for fewer than two."""
    if len(values) <= 1:
        return default
    smallest = second = math.inf
    for v in values:
        if v < smallest:
            second = smallest
            smallest = v
        elif v < second:
            second = v
    return int(second - smallest)


def gq_log10_from_likelihoods(best: int, log10_likelihoods: Sequence[float]) -> float:
    """log10 error probability of the maximum-likelihood genotype ``best``."""
    runner_up = -math.inf
    for i, value in enumerate(log10_likelihoods):
        if i != best and value >= runner_up:
            runner_up = value
    return runner_up - log10_likelihoods[best]


def phred_from_log10_error(log10_error: float) -> int:
    return java_round(log10_error * -10)


def call_genotype(
    log10_likelihoods: Sequence[float] | None,
    alleles: Sequence[Allele],
    cache: LikelihoodCalculatorCache,
) -> GenotypeCall:
    """Call the maximum-likelihood genotype over ``alleles``.

    Uninformative or missing likelihoods yield a no-call without quality. A
    homozygous-reference call carries no quality.
    """
    if log10_likelihoods is None or not is_informative(log10_likelihoods):
        return GenotypeCall(alleles=no_call_alleles())

    expected = cache.size(len(alleles))
    if len(log10_likelihoods) != expected:
        raise ValueError(
            f"likelihood vector has {len(log10_likelihoods)} entries, "
            f"expected {expected} for {len(alleles)} alleles"
        )

    best = max_element_index(log10_likelihoods)
    i, j = cache.indexer(len(alleles)).pair_for_index(best)
    called = (alleles[i], alleles[j])

    quality = None
    if not all(a.is_reference for a in called):
        quality = phred_from_log10_error(gq_log10_from_likelihoods(best, log10_likelihoods))
    return GenotypeCall(alleles=called, quality=quality, likelihood_index=best)


def call_from_pls(
    pls: Sequence[int] | None,
    alleles: Sequence[Allele],
    cache: LikelihoodCalculatorCache,
) -> GenotypeCall:
    """Convenience wrapper taking phred-scaled likelihoods."""
    if pls is None:
        return call_genotype(None, alleles, cache)
    return call_genotype(pls_to_log10_likelihoods(pls), alleles, cache)
