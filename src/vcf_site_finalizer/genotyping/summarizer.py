"""Collapse a PL vector into RGQ, ABGQ and ALTGQ.

Each allele ``k`` owns the PL positions of (0,0), (0,k) and (k,k). RGQ is the
hom-ref PL. ABGQ is the best non-zero PL among genotypes with the called
alleles in a different balance; ALTGQ is the best PL over the positions owned
by the alleles left after dropping one called alternate allele.
"""

from collections.abc import Iterable, Sequence

from ..models import Allele, SummarizedLikelihoods
from .likelihoods import LikelihoodCalculatorCache, index_for_allele_pair


def _min_or_none(current: int | None, value: int) -> int:
    return value if current is None or value < current else current


def owned_positions(alleles: Iterable[int]) -> set[int]:
    """PL positions of (0,0), (0,k) and (k,k) for every allele index k."""
    positions = set()
    for k in alleles:
        positions.update(
            (index_for_allele_pair(0, 0), index_for_allele_pair(0, k), index_for_allele_pair(k, k))
        )
    return positions


def summarize_likelihoods(
    pls: Sequence[int],
    called_alleles: Sequence[Allele],
    site_alleles: Sequence[Allele],
    cache: LikelihoodCalculatorCache,
) -> SummarizedLikelihoods:
    """Summarize ``pls`` (indexed over ``site_alleles``) for a called genotype."""
    expected = cache.size(len(site_alleles))
    if len(pls) < expected:
        raise ValueError(
            f"likelihood vector has {len(pls)} entries, expected {expected} "
            f"for {len(site_alleles)} alleles"
        )

    ref_quality = int(pls[0])
    called = [site_alleles.index(a) if a in site_alleles else -1 for a in called_alleles]
    if len(called) != 2 or -1 in called:
        return SummarizedLikelihoods(ref_quality, None, None)

    het = called[0] != called[1]
    called_positions = owned_positions(called)
    removed = {idx for idx, allele in zip(called, called_alleles) if not allele.is_reference}
    site_indices = range(len(site_alleles))
    comparison_positions = set()
    for r in removed:
        comparison_positions |= owned_positions(k for k in site_indices if k != r)

    allele_balance = None
    alt_confidence = None
    for index, (i, j) in enumerate(cache.indexer(len(site_alleles)).pairs()):
        pl = int(pls[index])
        if pl != 0:
            if het:
                compatible = index in called_positions
            else:
                # hom calls match allele indices against the owned PL positions
                compatible = i in called_positions or j in called_positions
            if compatible:
                allele_balance = _min_or_none(allele_balance, pl)
        if index in comparison_positions:
            alt_confidence = _min_or_none(alt_confidence, pl)

    if not removed:
        alt_confidence = allele_balance
    return SummarizedLikelihoods(ref_quality, allele_balance, alt_confidence)
