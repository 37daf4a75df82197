"""Pytest configuration and fixtures for vcf-site-finalizer tests."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))

from fixtures.vcf_generator import (  # noqa: E402
    SyntheticSite,
    VCFGenerator,
    make_biallelic_site,
    make_merged_vcf_file,
)

from vcf_site_finalizer.aggregator import SiteAggregator  # noqa: E402
from vcf_site_finalizer.config import FinalizerConfig  # noqa: E402
from vcf_site_finalizer.genotyping.likelihoods import LikelihoodCalculatorCache  # noqa: E402
from vcf_site_finalizer.models import (  # noqa: E402
    NON_REF,
    Allele,
    FullLikelihoods,
    GenotypeRecord,
    SiteRecord,
)

REF_A = Allele("A", is_reference=True)
ALT_C = Allele("C")
ALT_G = Allele("G")
ALT_T = Allele("T")


@pytest.fixture(scope="session")
def cache() -> LikelihoodCalculatorCache:
    """Default likelihood cache (6 alternate alleles)."""
    return LikelihoodCalculatorCache.build()


@pytest.fixture
def aggregator() -> SiteAggregator:
    return SiteAggregator(FinalizerConfig())


@pytest.fixture
def summarizing_aggregator() -> SiteAggregator:
    return SiteAggregator(FinalizerConfig(summarize_pls=True))


@pytest.fixture
def genotype_factory():
    """Factory for diploid GenotypeRecords over REF_A/ALT_G/NON_REF."""

    def _factory(sample="S1", alleles=(REF_A, ALT_G), pls=None, **kwargs):
        return GenotypeRecord(
            sample=sample,
            alleles=tuple(alleles),
            likelihoods=FullLikelihoods(tuple(pls)) if pls is not None else None,
            **kwargs,
        )

    return _factory


@pytest.fixture
def site_factory():
    """Factory for passing SiteRecords; override any field by keyword."""

    def _factory(**kwargs):
        defaults = {
            "contig": "chr1",
            "position": 1000,
            "alleles": [REF_A, ALT_G, NON_REF],
            "qual_approx": 120,
            "variant_depth": 20,
            "depth": 40,
        }
        defaults.update(kwargs)
        return SiteRecord(**defaults)

    return _factory


@pytest.fixture
def vcf_generator():
    """Provide VCFGenerator class for tests."""
    return VCFGenerator


@pytest.fixture
def synthetic_site_factory():
    """Factory for SyntheticSite instances based on the passing biallelic site."""

    def _factory(**kwargs):
        return make_biallelic_site(**kwargs)

    return _factory


@pytest.fixture
def merged_vcf_file():
    """Generate a merged VCF with one passing site and four skipped ones."""
    path = make_merged_vcf_file()
    yield path
    if path.exists():
        path.unlink()


@pytest.fixture
def write_vcf(tmp_path):
    """Write SyntheticSites to a VCF under tmp_path and return its path."""

    def _write(sites: list[SyntheticSite], samples: list[str] | None = None) -> Path:
        path = tmp_path / "input.vcf"
        path.write_text(VCFGenerator.generate(sites, samples))
        return path

    return _write
