"""Tests for site screening and finalization."""

import logging
import math

import pytest
from conftest import ALT_C, ALT_G, ALT_T, REF_A
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from vcf_site_finalizer.aggregator import (
    SiteAggregator,
    SkipReason,
    is_no_call_sentinel,
    is_properly_polymorphic,
)
from vcf_site_finalizer.config import FinalizerConfig
from vcf_site_finalizer.models import (
    NO_CALL,
    NON_REF,
    Allele,
    FullLikelihoods,
    GenotypeRecord,
    MalformedSiteError,
    SiteRecord,
    SummarizedLikelihoods,
)

STAR = Allele("*")
SYMBOLIC_STAR_DEL = Allele("<*:DEL>")


class TestPolymorphism:
    """Sites whose only alternates are placeholders are not variants."""

    @pytest.mark.parametrize(
        "alleles,expected",
        [
            ([REF_A, ALT_G], True),
            ([REF_A, ALT_G, NON_REF], True),
            ([REF_A, STAR], False),
            ([REF_A, NON_REF], False),
            ([REF_A, STAR, NON_REF], False),
            ([REF_A, STAR, ALT_G], True),
            ([REF_A, SYMBOLIC_STAR_DEL, NON_REF], False),
            ([REF_A, SYMBOLIC_STAR_DEL, ALT_G], True),
            ([REF_A], False),
        ],
    )
    def test_is_properly_polymorphic(self, alleles, expected):
        assert is_properly_polymorphic(alleles) is expected

    def test_no_call_sentinel_shapes(self, genotype_factory):
        assert is_no_call_sentinel(genotype_factory(alleles=(REF_A,)))
        assert is_no_call_sentinel(genotype_factory(alleles=(NO_CALL,)))
        assert not is_no_call_sentinel(genotype_factory(alleles=(ALT_G,)))
        assert not is_no_call_sentinel(genotype_factory(alleles=(REF_A, REF_A)))


class TestScreenSite:
    """Filtering decisions made before any per-sample work."""

    def test_passing_site(self, aggregator, site_factory):
        assert aggregator.screen_site(site_factory()) is None

    def test_not_variant(self, aggregator, site_factory):
        assert aggregator.screen_site(site_factory(alleles=[REF_A])) is SkipReason.NOT_VARIANT

    def test_not_polymorphic(self, aggregator, site_factory):
        site = site_factory(alleles=[REF_A, STAR, NON_REF])
        assert aggregator.screen_site(site) is SkipReason.NOT_POLYMORPHIC

    def test_deprecated_spanning_deletion_not_polymorphic(self, aggregator, site_factory):
        site = site_factory(alleles=[REF_A, SYMBOLIC_STAR_DEL, NON_REF])
        assert aggregator.screen_site(site) is SkipReason.NOT_POLYMORPHIC

    @pytest.mark.parametrize("depth", [0, None])
    def test_zero_depth(self, aggregator, site_factory, depth):
        assert aggregator.screen_site(site_factory(depth=depth)) is SkipReason.ZERO_DEPTH

    @pytest.mark.parametrize("variant_depth", [0, None])
    def test_zero_variant_depth(self, aggregator, site_factory, variant_depth):
        site = site_factory(variant_depth=variant_depth)
        assert aggregator.screen_site(site) is SkipReason.ZERO_VARIANT_DEPTH
        assert aggregator.finalize(site) is None

    def test_threshold_applies_heterozygosity_prior(self, aggregator, site_factory):
        assert aggregator.config.min_qual_approx == pytest.approx(60.0)
        assert aggregator.screen_site(site_factory(qual_approx=59.9)) is SkipReason.LOW_QUALITY
        assert aggregator.screen_site(site_factory(qual_approx=60)) is None

    def test_custom_prior(self, site_factory):
        aggregator = SiteAggregator(FinalizerConfig(heterozygosity=0.01))
        assert aggregator.screen_site(site_factory(qual_approx=55)) is None

    def test_missing_qual_approx_warns_once(self, aggregator, site_factory, caplog):
        with caplog.at_level(logging.WARNING, logger="vcf_site_finalizer"):
            for pos in (1, 2, 3):
                site = site_factory(position=pos, qual_approx=None)
                assert aggregator.screen_site(site) is SkipReason.LOW_QUALITY
        warnings = [r for r in caplog.records if "QUALapprox" in r.getMessage()]
        assert len(warnings) == 1

    def test_finalize_skipped_site_returns_none(self, aggregator, site_factory):
        assert aggregator.finalize(site_factory(qual_approx=10)) is None


class TestGenotypeFinalization:
    """Per-sample trimming, calling and GQ."""

    def test_trimmed_hom_ref_call(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(alleles=(REF_A, ALT_G), pls=[0, 50, 200, 80, 150, 300])
        result = aggregator.finalize(site_factory(genotypes=[genotype]))

        called = result.site.genotypes[0]
        assert called.alleles == (REF_A, REF_A)
        assert called.pls == (0, 50, 200)
        # no caller quality for hom-ref; GQ is the PL gap
        assert called.gq == 50

    def test_het_call_quality(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(
            alleles=(REF_A, REF_A), pls=[120, 0, 200, 150, 230, 400], gq=99
        )
        called = aggregator.finalize(site_factory(genotypes=[genotype])).site.genotypes[0]
        assert called.alleles == (REF_A, ALT_G)
        assert called.gq == 120

    def test_uninformative_pls_give_no_call(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(pls=[0, 0, 0, 0, 0, 0], gq=30)
        called = aggregator.finalize(site_factory(genotypes=[genotype])).site.genotypes[0]
        assert called.alleles == (NO_CALL, NO_CALL)
        assert called.gq is None
        assert called.pls == (0, 0, 0)

    def test_allele_depths_trimmed(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(pls=[120, 0, 200, 150, 230, 400], allele_depths=(10, 8, 1))
        called = aggregator.finalize(site_factory(genotypes=[genotype])).site.genotypes[0]
        assert called.allele_depths == (10, 8)

    def test_min_dp_removed(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(pls=[120, 0, 200, 150, 230, 400], min_depth=7)
        called = aggregator.finalize(site_factory(genotypes=[genotype])).site.genotypes[0]
        assert called.min_depth is None

    def test_input_genotype_untouched(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(pls=[120, 0, 200, 150, 230, 400], allele_depths=(10, 8, 1))
        aggregator.finalize(site_factory(genotypes=[genotype]))
        assert genotype.allele_depths == (10, 8, 1)
        assert genotype.pls == (120, 0, 200, 150, 230, 400)

    def test_haploid_sentinel_is_diploid_no_call(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(alleles=(REF_A,), pls=[0, 90, 900, 99, 950, 990], gq=40)
        called = aggregator.finalize(site_factory(genotypes=[genotype])).site.genotypes[0]
        assert called.alleles == (NO_CALL, NO_CALL)
        assert called.gq is None
        assert called.pls == (0, 90, 900)

    def test_non_ref_call_without_depths_is_no_call(
        self, aggregator, site_factory, genotype_factory
    ):
        genotype = genotype_factory(alleles=(REF_A, NON_REF), gq=20)
        called = aggregator.finalize(site_factory(genotypes=[genotype])).site.genotypes[0]
        assert called.alleles == (NO_CALL, NO_CALL)
        assert called.gq is None

    def test_non_ref_call_with_depths_keeps_alleles(
        self, aggregator, site_factory, genotype_factory
    ):
        genotype = genotype_factory(alleles=(REF_A, NON_REF), allele_depths=(5, 0, 3), gq=20)
        result = aggregator.finalize(site_factory(genotypes=[genotype]))
        called = result.site.genotypes[0]
        assert called.alleles == (REF_A, NON_REF)
        assert called.allele_depths == (5, 0)
        assert called.gq == 20
        assert result.site.info["AN"] == 1
        assert result.site.info["AC"] == 0
        assert result.site.info["AF"] == 0.0

    def test_non_ref_call_with_depths_in_summary_mode(
        self, summarizing_aggregator, site_factory, genotype_factory
    ):
        genotype = genotype_factory(
            alleles=(REF_A, NON_REF), allele_depths=(5, 0, 3), pls=[40, 30, 50, 0, 60, 70]
        )
        result = summarizing_aggregator.finalize(site_factory(genotypes=[genotype]))
        assert result.site.genotypes[0].alleles == (REF_A, NON_REF)
        assert result.site.info["AN"] == 1

    def test_non_ref_call_recalled_from_pls(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(alleles=(REF_A, NON_REF), pls=[300, 0, 500, 100, 600, 700])
        called = aggregator.finalize(site_factory(genotypes=[genotype])).site.genotypes[0]
        assert called.alleles == (REF_A, ALT_G)
        assert called.gq == 300

    def test_site_without_non_ref_keeps_arrays(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(pls=[120, 0, 200], allele_depths=(10, 8))
        site = site_factory(alleles=[REF_A, ALT_G], genotypes=[genotype])
        result = aggregator.finalize(site)
        assert result.site.alleles == [REF_A, ALT_G]
        assert result.site.genotypes[0].allele_depths == (10, 8)
        assert result.site.genotypes[0].pls == (120, 0, 200)


class TestMalformedSites:
    """One bad sample aborts the whole site."""

    def test_non_ref_not_last(self, aggregator, site_factory):
        site = site_factory(alleles=[REF_A, NON_REF, ALT_G])
        with pytest.raises(MalformedSiteError, match="chr1:1000"):
            aggregator.finalize(site)

    def test_triploid_rejected(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(sample="TRIP", alleles=(REF_A, REF_A, ALT_G))
        with pytest.raises(MalformedSiteError, match="TRIP"):
            aggregator.finalize(site_factory(genotypes=[genotype]))

    def test_haploid_alt_rejected(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(alleles=(ALT_G,))
        with pytest.raises(MalformedSiteError, match="ploidy 1"):
            aggregator.finalize(site_factory(genotypes=[genotype]))

    def test_short_likelihoods(self, aggregator, site_factory, genotype_factory):
        good = genotype_factory(sample="GOOD", pls=[120, 0, 200, 150, 230, 400])
        bad = genotype_factory(sample="BAD", pls=[0, 10])
        with pytest.raises(MalformedSiteError, match="BAD.*chr1:1000"):
            aggregator.finalize(site_factory(genotypes=[good, bad]))

    def test_short_depths(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(allele_depths=(10,))
        with pytest.raises(MalformedSiteError, match="allele depth"):
            aggregator.finalize(site_factory(genotypes=[genotype]))

    def test_bad_raw_mapping_quality(self, aggregator, site_factory):
        site = site_factory(info={"RAW_MQandDP": (1, 2, 3)})
        with pytest.raises(MalformedSiteError, match="mapping quality"):
            aggregator.finalize(site)

    def test_malformed_error_is_value_error(self):
        assert issubclass(MalformedSiteError, ValueError)


class TestSiteStatistics:
    """AC/AF/AN, QUAL, QD, MQ, FS and SOR."""

    def test_two_sample_allele_frequency(self, aggregator, site_factory, genotype_factory):
        het = genotype_factory(sample="A", pls=[120, 0, 200, 150, 230, 400])
        hom = genotype_factory(sample="B", pls=[900, 45, 0, 950, 40, 990])
        result = aggregator.finalize(site_factory(genotypes=[het, hom]))

        info = result.site.info
        assert info["AC"] == 3
        assert info["AN"] == 4
        assert info["AF"] == pytest.approx(0.75)

    def test_multiallelic_lists(self, aggregator, site_factory, genotype_factory):
        alleles = [REF_A, ALT_G, ALT_T, NON_REF]
        pls_gt = [500, 400, 450, 300, 0, 350, 600, 600, 600, 600]
        pls_rr = [0, 60, 900, 70, 900, 900, 80, 900, 900, 900]
        genotypes = [
            genotype_factory(sample="A", pls=pls_gt),
            genotype_factory(sample="B", pls=pls_rr),
        ]
        info = aggregator.finalize(site_factory(alleles=alleles, genotypes=genotypes)).site.info
        assert info["AC"] == [1, 1]
        assert info["AF"] == [pytest.approx(0.25), pytest.approx(0.25)]
        assert info["AN"] == 4

    def test_no_called_alleles(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(pls=[0, 0, 0, 0, 0, 0])
        info = aggregator.finalize(site_factory(genotypes=[genotype])).site.info
        assert info["AN"] == 0
        assert info["AC"] == 0
        assert math.isnan(info["AF"])

    def test_qual_and_qd(self, aggregator, site_factory):
        result = aggregator.finalize(site_factory(qual_approx=120, variant_depth=20))
        assert result.site.qual == 120
        assert result.site.qual_approx is None
        assert result.site.info["QD"] == pytest.approx(6.0)

    def test_mapping_quality(self, aggregator, site_factory):
        result = aggregator.finalize(site_factory(info={"RAW_MQandDP": (144000, 40)}))
        assert result.site.info["MQ"] == "60.00"
        assert "RAW_MQandDP" not in result.site.info
        assert result.sites_only.info["RAW_MQandDP"] == (144000, 40)

    def test_strand_bias_summed_from_samples(self, aggregator, site_factory, genotype_factory):
        genotypes = [
            genotype_factory(sample="A", pls=[120, 0, 200, 150, 230, 400], strand_bias=(5, 5, 4, 4)),
            genotype_factory(sample="B", pls=[0, 60, 900, 66, 910, 920], strand_bias=(11, 11, 0, 0)),
        ]
        site = site_factory(genotypes=genotypes, strand_bias_table=(1, 1, 1, 1))
        result = aggregator.finalize(site)
        assert result.sites_only.strand_bias_table == (16, 16, 4, 4)
        assert result.site.info["FS"] == "0.000"
        assert result.site.info["SOR"] == "0.693"
        assert result.site.strand_bias_table is None

    def test_site_table_used_without_sample_sb(self, aggregator, site_factory):
        result = aggregator.finalize(site_factory(strand_bias_table=(20, 20, 0, 20)))
        assert result.sites_only.strand_bias_table == (20, 20, 0, 20)
        assert float(result.site.info["FS"]) > 10

    def test_sites_only_view(self, aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(pls=[120, 0, 200, 150, 230, 400])
        site = site_factory(genotypes=[genotype], info={"AS_QUALapprox": "0|120"})
        sites_only = aggregator.finalize(site).sites_only

        assert sites_only.genotypes == []
        assert sites_only.alleles == [REF_A, ALT_G]
        assert sites_only.qual_approx == 120
        assert sites_only.info["AS_QUALapprox"] == "0|120"
        assert sites_only.info["AC"] == 1
        assert "FS" not in sites_only.info
        assert "QD" not in sites_only.info

    def test_input_site_untouched(self, aggregator, site_factory, genotype_factory):
        site = site_factory(genotypes=[genotype_factory(pls=[120, 0, 200, 150, 230, 400])])
        aggregator.finalize(site)
        assert site.alleles == [REF_A, ALT_G, NON_REF]
        assert site.qual_approx == 120
        assert "AC" not in site.info


class TestSummarizedMode:
    """PLs replaced by RGQ/ABGQ/ALTGQ; genotypes are not re-called."""

    def test_summary_replaces_pls(self, summarizing_aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(
            alleles=(REF_A, ALT_G), pls=[50, 0, 30, 10, 40, 60], gq=30, allele_depths=(5, 4, 0)
        )
        called = summarizing_aggregator.finalize(site_factory(genotypes=[genotype])).site.genotypes[0]
        assert called.likelihoods == SummarizedLikelihoods(50, 30, 10)
        assert called.alleles == (REF_A, ALT_G)
        assert called.gq == 30
        assert called.allele_depths == (5, 4)
        assert called.pls is None

    def test_summary_counts_input_calls(self, summarizing_aggregator, site_factory, genotype_factory):
        genotype = genotype_factory(alleles=(ALT_G, ALT_G), pls=[900, 45, 0, 950, 40, 990])
        info = summarizing_aggregator.finalize(site_factory(genotypes=[genotype])).site.info
        assert info["AC"] == 2
        assert info["AN"] == 2


class TestAlleleCountConservation:
    """AN equals twice the number of called samples."""

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture], max_examples=50)
    @given(
        st.lists(
            st.lists(st.integers(min_value=0, max_value=200), min_size=10, max_size=10),
            min_size=1,
            max_size=12,
        )
    )
    def test_allele_number_conservation(self, site_factory, pl_vectors):
        aggregator = SiteAggregator()
        genotypes = [
            GenotypeRecord(
                sample=f"S{i}", alleles=(REF_A, REF_A), likelihoods=FullLikelihoods(tuple(pls))
            )
            for i, pls in enumerate(pl_vectors)
        ]
        site = site_factory(alleles=[REF_A, ALT_G, ALT_C, NON_REF], genotypes=genotypes)
        result = aggregator.finalize(site)

        called = [g for g in result.site.genotypes if not g.is_no_call]
        assert result.site.info["AN"] == 2 * len(called)
        ref_count = sum(g.count_allele(REF_A) for g in called)
        assert ref_count + sum(result.site.info["AC"]) == result.site.info["AN"]


def test_site_record_locus():
    site = SiteRecord(contig="chr2", position=5, alleles=[REF_A, ALT_G])
    assert site.locus == "chr2:5"
