"""Text VCF output for finalized and sites-only records."""

import logging
import math
from pathlib import Path
from typing import Any, TextIO

from . import __version__
from .models import (
    ALLELE_BALANCE_QUALITY_KEY,
    ALLELE_DEPTHS_KEY,
    ALT_CONFIDENCE_QUALITY_KEY,
    DEPTH_KEY,
    GENOTYPE_KEY,
    GENOTYPE_QUALITY_KEY,
    LIKELIHOODS_KEY,
    MIN_DP_KEY,
    QUAL_APPROX_KEY,
    REFERENCE_GENOTYPE_QUALITY_KEY,
    SB_TABLE_KEY,
    STRAND_BIAS_BY_SAMPLE_KEY,
    VARIANT_DEPTH_KEY,
    FullLikelihoods,
    GenotypeRecord,
    MalformedSiteError,
    SiteRecord,
    SummarizedLikelihoods,
)

logger = logging.getLogger(__name__)

GVCF_BLOCK_PREFIX = "##GVCFBlock"

FINALIZED_INFO_LINES = {
    "AC": '##INFO=<ID=AC,Number=A,Type=Integer,Description="Allele count in genotypes, for each ALT allele, in the same order as listed">',
    "AF": '##INFO=<ID=AF,Number=A,Type=Float,Description="Allele Frequency, for each ALT allele, in the same order as listed">',
    "AN": '##INFO=<ID=AN,Number=1,Type=Integer,Description="Total number of alleles in called genotypes">',
    "FS": '##INFO=<ID=FS,Number=1,Type=Float,Description="Phred-scaled p-value using Fisher\'s exact test to detect strand bias">',
    "SOR": '##INFO=<ID=SOR,Number=1,Type=Float,Description="Symmetric Odds Ratio of 2x2 contingency table to detect strand bias">',
    "SB_TABLE": '##INFO=<ID=SB_TABLE,Number=.,Type=String,Description="Forward/reverse read counts for strand bias tests">',
    "QD": '##INFO=<ID=QD,Number=1,Type=Float,Description="Variant Confidence/Quality by Depth">',
    "MQ": '##INFO=<ID=MQ,Number=1,Type=Float,Description="RMS Mapping Quality">',
    "DP": '##INFO=<ID=DP,Number=1,Type=Integer,Description="Approximate read depth; some reads may have been filtered">',
}

SUMMARY_FORMAT_LINES = {
    REFERENCE_GENOTYPE_QUALITY_KEY: '##FORMAT=<ID=RGQ,Number=1,Type=Integer,Description="Unconditional reference genotype confidence, encoded as a phred quality -10*log10 p(genotype call is wrong)">',
    ALLELE_BALANCE_QUALITY_KEY: '##FORMAT=<ID=ABGQ,Number=1,Type=Integer,Description="Genotype quality considering only genotypes that contain the called alleles">',
    ALT_CONFIDENCE_QUALITY_KEY: '##FORMAT=<ID=ALTGQ,Number=1,Type=Integer,Description="Genotype quality considering only genotypes that lack a called alternate allele">',
}


def format_vcf_double(value: float) -> str:
    """Render a float the way htsjdk's VCF encoder does."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value < 1:
        if value < 0.01:
            if abs(value) >= 1e-20:
                return f"{value:.3e}"
            return "0.00"
        return f"{value:.3f}"
    return f"{value:.2f}"


def format_qual(qual: float | None) -> str:
    if qual is None:
        return "."
    formatted = f"{qual:.2f}"
    if formatted.endswith(".00"):
        formatted = formatted[: -len(".00")]
    return formatted


def format_value(value: Any) -> str:
    if value is None:
        return "."
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float):
        return format_vcf_double(value)
    if isinstance(value, (list, tuple)):
        return ",".join(format_value(v) for v in value)
    return str(value)


def format_info(site: SiteRecord) -> str:
    info = dict(site.info)
    if site.depth is not None:
        info[DEPTH_KEY] = site.depth
    if site.qual_approx is not None:
        info[QUAL_APPROX_KEY] = site.qual_approx
    if site.variant_depth is not None:
        info[VARIANT_DEPTH_KEY] = site.variant_depth
    if site.strand_bias_table is not None:
        info[SB_TABLE_KEY] = site.strand_bias_table

    fields = []
    for key in sorted(info):
        value = info[key]
        if value is True:
            fields.append(key)
        elif value is False or value is None:
            continue
        else:
            fields.append(f"{key}={format_value(value)}")
    return ";".join(fields) if fields else "."


def format_genotype_alleles(genotype: GenotypeRecord, site: SiteRecord) -> str:
    indices = []
    for allele in genotype.alleles:
        if allele.is_no_call:
            indices.append(".")
            continue
        index = site.allele_index(allele)
        if index < 0 and allele.is_non_ref:
            # dropped from the site; only the target-allele part of the call is written
            indices.append(".")
            continue
        if index < 0:
            raise MalformedSiteError(
                f"Allele {allele} of sample {genotype.sample} is not among the alleles "
                f"at position {site.locus}"
            )
        indices.append(str(index))
    return ("|" if genotype.phased else "/").join(indices)


def genotype_fields(genotype: GenotypeRecord) -> dict[str, Any]:
    """FORMAT values of ``genotype`` other than GT, keyed by FORMAT key."""
    fields: dict[str, Any] = dict(genotype.attributes)
    if genotype.allele_depths is not None:
        fields[ALLELE_DEPTHS_KEY] = genotype.allele_depths
    if genotype.depth is not None:
        fields[DEPTH_KEY] = genotype.depth
    if genotype.gq is not None:
        fields[GENOTYPE_QUALITY_KEY] = genotype.gq
    if genotype.strand_bias is not None:
        fields[STRAND_BIAS_BY_SAMPLE_KEY] = genotype.strand_bias
    if genotype.min_depth is not None:
        fields[MIN_DP_KEY] = genotype.min_depth

    likelihoods = genotype.likelihoods
    if isinstance(likelihoods, FullLikelihoods):
        fields[LIKELIHOODS_KEY] = likelihoods.pls
    elif isinstance(likelihoods, SummarizedLikelihoods):
        fields[REFERENCE_GENOTYPE_QUALITY_KEY] = likelihoods.ref_quality
        if likelihoods.allele_balance_quality is not None:
            fields[ALLELE_BALANCE_QUALITY_KEY] = likelihoods.allele_balance_quality
        if likelihoods.alt_confidence_quality is not None:
            fields[ALT_CONFIDENCE_QUALITY_KEY] = likelihoods.alt_confidence_quality
    return fields


class VCFSiteWriter:
    """Writes SiteRecords as text VCF.

    Genotype columns follow the sorted sample order; pass ``samples=[]`` for a
    sites-only file.
    """

    def __init__(
        self,
        output_path: Path | str,
        header_lines: list[str],
        samples: list[str],
        summarize_pls: bool = False,
    ):
        self.output_path = Path(output_path)
        self.samples = sorted(samples)
        self.summarize_pls = summarize_pls
        self.records_written = 0
        self._header_lines = header_lines
        self._handle: TextIO | None = None

    def open(self) -> None:
        self._handle = open(self.output_path, "w")
        self._handle.write("\n".join(self.build_header()) + "\n")

    def build_header(self) -> list[str]:
        added = list(FINALIZED_INFO_LINES.values())
        replaced = [f"##INFO=<ID={key}," for key in FINALIZED_INFO_LINES]
        if self.summarize_pls and self.samples:
            added.extend(SUMMARY_FORMAT_LINES.values())
            replaced.extend(f"##FORMAT=<ID={key}," for key in SUMMARY_FORMAT_LINES)

        meta = []
        for line in self._header_lines:
            if not line.startswith("##") or line.startswith(GVCF_BLOCK_PREFIX):
                continue
            if line.startswith(tuple(replaced)):
                continue
            meta.append(line)

        meta.extend(added)
        meta.append(f"##source=vcf-site-finalizer {__version__}")

        columns = ["#CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO"]
        if self.samples:
            columns.append("FORMAT")
            columns.extend(self.samples)
        return meta + ["\t".join(columns)]

    def format_record(self, site: SiteRecord) -> str:
        alts = [a.bases for a in site.alternate_alleles]
        columns = [
            site.contig,
            str(site.position),
            site.id or ".",
            site.reference.bases,
            ",".join(alts) if alts else ".",
            format_qual(site.qual),
            ";".join(site.filters) if site.filters else ".",
            format_info(site),
        ]
        if not self.samples:
            return "\t".join(columns)

        by_sample = {g.sample: g for g in site.genotypes}
        per_sample = {name: genotype_fields(g) for name, g in by_sample.items()}
        keys = sorted({key for fields in per_sample.values() for key in fields})
        columns.append(":".join([GENOTYPE_KEY] + keys))

        for name in self.samples:
            genotype = by_sample.get(name)
            if genotype is None:
                columns.append("./.")
                continue
            fields = per_sample[name]
            values = [format_genotype_alleles(genotype, site)]
            values.extend(format_value(fields.get(key)) for key in keys)
            while len(values) > 1 and values[-1] == ".":
                values.pop()
            columns.append(":".join(values))
        return "\t".join(columns)

    def write(self, site: SiteRecord) -> None:
        if self._handle is None:
            raise RuntimeError("Writer is not open")
        self._handle.write(self.format_record(site) + "\n")
        self.records_written += 1

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "VCFSiteWriter":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
