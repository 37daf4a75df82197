"""Likelihood-vector algebra: sizing, indexing, calling, trimming, summarizing."""

from .caller import (
    GenotypeCall,
    call_from_pls,
    call_genotype,
    is_informative,
    pls_to_log10_likelihoods,
    second_smallest_minus_smallest,
)
from .likelihoods import (
    DEFAULT_MAX_ALT_ALLELES,
    AllelePairIndexer,
    LikelihoodCalculatorCache,
    allele_pair_for_index,
    index_for_allele_pair,
    likelihood_count,
)
from .summarizer import summarize_likelihoods
from .trimming import trim_depths, trim_likelihoods

__all__ = [
    "DEFAULT_MAX_ALT_ALLELES",
    "AllelePairIndexer",
    "GenotypeCall",
    "LikelihoodCalculatorCache",
    "allele_pair_for_index",
    "call_from_pls",
    "call_genotype",
    "index_for_allele_pair",
    "is_informative",
    "likelihood_count",
    "pls_to_log10_likelihoods",
    "second_smallest_minus_smallest",
    "summarize_likelihoods",
    "trim_depths",
    "trim_likelihoods",
]
