"""Data models for merged sites and their per-sample genotypes."""

from dataclasses import dataclass, field
from typing import Any

PLOIDY = 2

NON_REF_SYMBOL = "<NON_REF>"
STAR_SYMBOL = "<*>"
SPANNING_DELETION = "*"
DEPRECATED_SPANNING_DELETION = "<*:DEL>"
NO_CALL_SYMBOL = "."


class MalformedSiteError(ValueError):
    """Raised when a site or one of its samples violates the input format."""

    pass


@dataclass(frozen=True)
class Allele:
    """An allele symbol; equality is by symbol and reference status."""

    bases: str
    is_reference: bool = False

    @property
    def is_no_call(self) -> bool:
        return self.bases == NO_CALL_SYMBOL

    @property
    def is_non_ref(self) -> bool:
        """True for the symbolic catch-all allele."""
        return self.bases in (NON_REF_SYMBOL, STAR_SYMBOL)

    @property
    def is_symbolic(self) -> bool:
        return self.bases.startswith("<") and self.bases.endswith(">")

    @property
    def is_spanning_deletion(self) -> bool:
        return self.bases in (SPANNING_DELETION, DEPRECATED_SPANNING_DELETION)

    def __str__(self) -> str:
        return self.bases


NON_REF = Allele(NON_REF_SYMBOL)
NO_CALL = Allele(NO_CALL_SYMBOL)


def no_call_alleles() -> tuple[Allele, Allele]:
    """Diploid no-call."""
    return (NO_CALL, NO_CALL)


@dataclass(frozen=True)
class FullLikelihoods:
    """Complete phred-scaled likelihood vector (PL)."""

    pls: tuple[int, ...]


@dataclass(frozen=True)
class SummarizedLikelihoods:
    """Three-scalar stand-in for a PL vector.

    ``allele_balance_quality`` and ``alt_confidence_quality`` are None when no
    competing genotype exists.
    """

    ref_quality: int
    allele_balance_quality: int | None
    alt_confidence_quality: int | None


Likelihoods = FullLikelihoods | SummarizedLikelihoods


@dataclass
class GenotypeRecord:
    """One sample's genotype at a site.

    ``attributes`` holds FORMAT fields without a typed slot, as raw strings.
    """

    sample: str
    alleles: tuple[Allele, ...]
    phased: bool = False
    likelihoods: Likelihoods | None = None
    allele_depths: tuple[int, ...] | None = None
    depth: int | None = None
    gq: int | None = None
    strand_bias: tuple[int, int, int, int] | None = None
    min_depth: int | None = None
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def ploidy(self) -> int:
        return len(self.alleles)

    @property
    def pls(self) -> tuple[int, ...] | None:
        if isinstance(self.likelihoods, FullLikelihoods):
            return self.likelihoods.pls
        return None

    @property
    def is_no_call(self) -> bool:
        return all(a.is_no_call for a in self.alleles)

    def count_allele(self, allele: Allele) -> int:
        return sum(1 for a in self.alleles if a == allele)


@dataclass
class SiteRecord:
    """A merged multi-sample site.

    ``alleles`` lists the reference first; the symbolic allele, when present,
    must be last. ``info`` holds INFO attributes without a typed slot.
    """

    contig: str
    position: int
    alleles: list[Allele]
    genotypes: list[GenotypeRecord] = field(default_factory=list)
    id: str | None = None
    qual: float | None = None
    filters: list[str] = field(default_factory=list)
    qual_approx: float | None = None
    variant_depth: int | None = None
    depth: int | None = None
    strand_bias_table: tuple[int, int, int, int] | None = None
    info: dict[str, Any] = field(default_factory=dict)

    @property
    def locus(self) -> str:
        return f"{self.contig}:{self.position}"

    @property
    def reference(self) -> Allele:
        return self.alleles[0]

    @property
    def alternate_alleles(self) -> list[Allele]:
        return self.alleles[1:]

    def allele_index(self, allele: Allele) -> int:
        """Index of ``allele`` in the site allele list, -1 if absent."""
        try:
            return self.alleles.index(allele)
        except ValueError:
            return -1


@dataclass
class FinalizationResult:
    """The two views of one finalized site.

    ``site`` carries genotypes and derived statistics; ``sites_only`` carries no
    genotypes, the raw attributes and the accumulated strand-bias table.
    """

    site: SiteRecord
    sites_only: SiteRecord


# INFO keys
DEPTH_KEY = "DP"
QUAL_APPROX_KEY = "QUALapprox"
VARIANT_DEPTH_KEY = "VarDP"
SB_TABLE_KEY = "SB_TABLE"
ALLELE_COUNT_KEY = "AC"
ALLELE_FREQUENCY_KEY = "AF"
ALLELE_NUMBER_KEY = "AN"
FISHER_STRAND_KEY = "FS"
STRAND_ODDS_RATIO_KEY = "SOR"
QUAL_BY_DEPTH_KEY = "QD"

# FORMAT keys
GENOTYPE_KEY = "GT"
ALLELE_DEPTHS_KEY = "AD"
GENOTYPE_QUALITY_KEY = "GQ"
LIKELIHOODS_KEY = "PL"
STRAND_BIAS_BY_SAMPLE_KEY = "SB"
MIN_DP_KEY = "MIN_DP"
REFERENCE_GENOTYPE_QUALITY_KEY = "RGQ"
ALLELE_BALANCE_QUALITY_KEY = "ABGQ"
ALT_CONFIDENCE_QUALITY_KEY = "ALTGQ"
