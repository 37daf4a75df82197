"""Per-site finalization of merged gVCF records.

For every site that passes screening, the symbolic allele is dropped, each
sample's AD/PL arrays are trimmed and its genotype re-called (or its PLs
summarized), and AC/AF/AN, FS, SOR, QD and MQ are derived from the results.
"""

import logging
import math
from dataclasses import replace
from enum import Enum
from typing import Any

from .annotations.mapping_quality import finalize_raw_mq
from .annotations.strand_bias import (
    add_sb_tables,
    decode_sb_table,
    fisher_strand_score,
    format_strand_stat,
    strand_odds_ratio,
)
from .config import FinalizerConfig
from .genotyping.caller import call_from_pls, second_smallest_minus_smallest
from .genotyping.likelihoods import LikelihoodCalculatorCache
from .genotyping.summarizer import summarize_likelihoods
from .genotyping.trimming import trim_depths, trim_likelihoods
from .models import (
    ALLELE_COUNT_KEY,
    ALLELE_FREQUENCY_KEY,
    ALLELE_NUMBER_KEY,
    FISHER_STRAND_KEY,
    PLOIDY,
    QUAL_APPROX_KEY,
    QUAL_BY_DEPTH_KEY,
    STRAND_ODDS_RATIO_KEY,
    Allele,
    FinalizationResult,
    FullLikelihoods,
    GenotypeRecord,
    MalformedSiteError,
    SiteRecord,
    no_call_alleles,
)

logger = logging.getLogger(__name__)


class SkipReason(Enum):
    """Why a site produced no output."""

    NOT_VARIANT = "not_variant"
    NOT_POLYMORPHIC = "not_polymorphic"
    ZERO_DEPTH = "zero_depth"
    ZERO_VARIANT_DEPTH = "zero_variant_depth"
    LOW_QUALITY = "low_quality"


def is_properly_polymorphic(alleles: list[Allele]) -> bool:
    """False when the only alternates are a spanning deletion and/or symbolic."""
    alts = alleles[1:]
    if not alts:
        return False
    if len(alts) == 1:
        return not (alts[0].is_spanning_deletion or alts[0].is_symbolic)
    if alts[0].is_spanning_deletion and alts[1].is_non_ref:
        return False
    return True


def is_no_call_sentinel(genotype: GenotypeRecord) -> bool:
    """Haploid ref or missing genotype used upstream to encode a no-call."""
    return genotype.ploidy == 1 and (
        genotype.alleles[0].is_reference or genotype.alleles[0].is_no_call
    )


def target_alleles_for(site: SiteRecord) -> tuple[list[Allele], bool]:
    """Site alleles without the symbolic allele, and whether it was removed."""
    positions = [i for i, a in enumerate(site.alleles) if a.is_non_ref]
    if not positions:
        return list(site.alleles), False
    if positions != [len(site.alleles) - 1]:
        raise MalformedSiteError(
            "The symbolic <NON_REF> allele must be listed last, as in HaplotypeCaller "
            f"GVCF output, but that was not the case at position {site.locus}."
        )
    return list(site.alleles[:-1]), True


def _scalar_or_list(values: list[Any]) -> Any:
    return values[0] if len(values) == 1 else values


class SiteAggregator:
    """Finalizes sites one at a time.

    The likelihood cache is built once in the constructor and only read
    afterwards; no per-site state survives between calls.
    """

    def __init__(
        self,
        config: FinalizerConfig | None = None,
        cache: LikelihoodCalculatorCache | None = None,
    ):
        self.config = config or FinalizerConfig()
        self.cache = cache or LikelihoodCalculatorCache.build(self.config.max_alt_alleles)
        self._warned_missing_qual_approx = False

    def screen_site(self, site: SiteRecord) -> SkipReason | None:
        """Return why ``site`` should be skipped, or None to finalize it."""
        if len(site.alleles) < 2:
            return SkipReason.NOT_VARIANT
        if not is_properly_polymorphic(site.alleles):
            return SkipReason.NOT_POLYMORPHIC
        if not site.depth:
            return SkipReason.ZERO_DEPTH
        if not site.variant_depth:
            return SkipReason.ZERO_VARIANT_DEPTH

        if site.qual_approx is None and not self._warned_missing_qual_approx:
            logger.warning(
                "Variant will not be output because it is missing the %s key "
                "assigned by ReblockGVCFs; check the upstream merge configuration "
                "if the input did come from ReblockGVCFs",
                QUAL_APPROX_KEY,
            )
            self._warned_missing_qual_approx = True
        qual_approx = site.qual_approx if site.qual_approx is not None else 0.0
        if qual_approx < self.config.min_qual_approx:
            return SkipReason.LOW_QUALITY
        return None

    def finalize(self, site: SiteRecord) -> FinalizationResult | None:
        """Screen and finalize ``site``; None when it is filtered out."""
        reason = self.screen_site(site)
        if reason is not None:
            logger.debug("Skipping site %s: %s", site.locus, reason.value)
            return None
        return self.finalize_site(site)

    def finalize_site(self, site: SiteRecord) -> FinalizationResult:
        """Finalize a site that already passed screening.

        The strand-bias table is the sum of the per-sample SB tables. When no
        sample carries SB, the site-level SB_TABLE from the input is used as is.
        A kept <NON_REF> genotype allele contributes to neither AC nor AN.

        Raises:
            MalformedSiteError: If any sample's data violates the input format.
        """
        target_alleles, remove_non_ref = target_alleles_for(site)
        likelihood_size = self.cache.size(len(target_alleles))

        allele_counts: dict[Allele, int] = {a: 0 for a in target_alleles}
        sb_sum = [0, 0, 0, 0]
        saw_sample_sb = False

        genotypes = []
        for genotype in site.genotypes:
            finalized = self._finalize_genotype(
                site, genotype, target_alleles, remove_non_ref, likelihood_size
            )
            genotypes.append(finalized)

            if genotype.strand_bias is not None:
                add_sb_tables(sb_sum, genotype.strand_bias)
                saw_sample_sb = True

            for allele in finalized.alleles[:PLOIDY]:
                if not allele.is_no_call:
                    allele_counts[allele] = allele_counts.get(allele, 0) + 1

        if not saw_sample_sb and site.strand_bias_table is not None:
            sb_sum = list(site.strand_bias_table)

        allele_number = sum(allele_counts[a] for a in target_alleles)
        alt_counts = [allele_counts[a] for a in target_alleles if not a.is_reference]
        alt_freqs = [c / allele_number if allele_number else math.nan for c in alt_counts]
        allele_stats = {
            ALLELE_COUNT_KEY: _scalar_or_list(alt_counts),
            ALLELE_FREQUENCY_KEY: _scalar_or_list(alt_freqs),
            ALLELE_NUMBER_KEY: allele_number,
        }

        qual_approx = site.qual_approx if site.qual_approx is not None else 0.0
        table = decode_sb_table(sb_sum)

        try:
            info = finalize_raw_mq(site.info, site.depth)
        except ValueError as e:
            raise MalformedSiteError(f"Bad mapping quality data at position {site.locus}: {e}") from e
        info.update(allele_stats)
        info[FISHER_STRAND_KEY] = format_strand_stat(fisher_strand_score(table))
        info[STRAND_ODDS_RATIO_KEY] = format_strand_stat(strand_odds_ratio(table))
        if site.variant_depth:
            info[QUAL_BY_DEPTH_KEY] = qual_approx / site.variant_depth

        finalized_site = replace(
            site,
            alleles=target_alleles,
            genotypes=genotypes,
            qual=qual_approx,
            qual_approx=None,
            strand_bias_table=None,
            info=info,
        )

        raw_info = dict(site.info)
        raw_info.update(allele_stats)
        sites_only = replace(
            site,
            alleles=target_alleles,
            genotypes=[],
            strand_bias_table=tuple(sb_sum),
            info=raw_info,
        )
        return FinalizationResult(site=finalized_site, sites_only=sites_only)

    def _finalize_genotype(
        self,
        site: SiteRecord,
        genotype: GenotypeRecord,
        target_alleles: list[Allele],
        remove_non_ref: bool,
        likelihood_size: int,
    ) -> GenotypeRecord:
        sentinel = is_no_call_sentinel(genotype)
        if genotype.ploidy != PLOIDY and not sentinel:
            raise MalformedSiteError(
                f"This tool assumes diploid genotypes, but sample {genotype.sample} has "
                f"ploidy {genotype.ploidy} at position {site.locus}."
            )

        finalized = replace(genotype, attributes=dict(genotype.attributes), min_depth=None)
        try:
            if sentinel:
                finalized.alleles = no_call_alleles()
                finalized.gq = None
            if remove_non_ref:
                if genotype.allele_depths is not None:
                    finalized.allele_depths = trim_depths(
                        genotype.allele_depths, len(target_alleles)
                    )
                elif not sentinel and any(a.is_non_ref for a in genotype.alleles):
                    # policy: without AD a call on the dropped allele becomes a no-call
                    finalized.alleles = no_call_alleles()
                    finalized.gq = None

            pls = genotype.pls
            if pls is None:
                return finalized

            if self.config.summarize_pls:
                finalized.likelihoods = summarize_likelihoods(
                    pls, genotype.alleles, site.alleles, self.cache
                )
                return finalized

            trimmed = trim_likelihoods(pls, likelihood_size)
            finalized.likelihoods = FullLikelihoods(trimmed)
            if sentinel:
                return finalized

            finalized.gq = second_smallest_minus_smallest(trimmed)
            call = call_from_pls(trimmed, target_alleles, self.cache)
            finalized.alleles = call.alleles
            if call.is_no_call:
                finalized.gq = None
            elif call.quality is not None:
                finalized.gq = call.quality
        except ValueError as e:
            raise MalformedSiteError(
                f"Malformed data for sample {genotype.sample} at position {site.locus}: {e}"
            ) from e
        return finalized
