"""VCF parsing functionality."""

import logging
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from cyvcf2 import VCF

from .models import (
    ALLELE_DEPTHS_KEY,
    DEPTH_KEY,
    GENOTYPE_KEY,
    GENOTYPE_QUALITY_KEY,
    LIKELIHOODS_KEY,
    MIN_DP_KEY,
    NO_CALL,
    NON_REF_SYMBOL,
    QUAL_APPROX_KEY,
    SB_TABLE_KEY,
    STAR_SYMBOL,
    STRAND_BIAS_BY_SAMPLE_KEY,
    VARIANT_DEPTH_KEY,
    Allele,
    FullLikelihoods,
    GenotypeRecord,
    MalformedSiteError,
    SiteRecord,
)

logger = logging.getLogger(__name__)

INT32_MISSING = -2147483648
INT32_VECTOR_END = -2147483647

STRAND_BIAS_TABLE_LENGTH = 4

# FORMAT keys read into typed GenotypeRecord slots, with their VCF Number
TYPED_FORMAT_KEYS: dict[str, str] = {
    GENOTYPE_KEY: "1",
    ALLELE_DEPTHS_KEY: "R",
    DEPTH_KEY: "1",
    GENOTYPE_QUALITY_KEY: "1",
    LIKELIHOODS_KEY: "G",
    STRAND_BIAS_BY_SAMPLE_KEY: str(STRAND_BIAS_TABLE_LENGTH),
    MIN_DP_KEY: "1",
}

TYPED_INFO_KEYS = (DEPTH_KEY, QUAL_APPROX_KEY, VARIANT_DEPTH_KEY, SB_TABLE_KEY)


class InvalidHeaderError(ValueError):
    """Raised when a header declares a typed key with an unusable type."""

    pass


class VCFHeaderParser:
    """Parser for VCF header information."""

    def parse_info_fields(self, header_lines: list[str]) -> dict[str, dict[str, str]]:
        """Parse INFO field definitions from header lines."""
        return self._parse_definitions(header_lines, re.compile(r'##INFO=<(.+)>'))

    def parse_format_fields(self, header_lines: list[str]) -> dict[str, dict[str, str]]:
        """Parse FORMAT field definitions from header lines."""
        return self._parse_definitions(header_lines, re.compile(r'##FORMAT=<(.+)>'))

    def validate_typed_format_fields(self, format_fields: dict[str, dict[str, str]]) -> None:
        """Check that typed numeric FORMAT keys are declared as integers.

        Raises:
            InvalidHeaderError: If a typed key is declared with another type.
        """
        for key in TYPED_FORMAT_KEYS:
            if key == GENOTYPE_KEY or key not in format_fields:
                continue
            declared = format_fields[key].get('Type')
            if declared != 'Integer':
                raise InvalidHeaderError(
                    f"FORMAT/{key} must be declared Type=Integer, found Type={declared}"
                )
            number = format_fields[key].get('Number')
            if number != TYPED_FORMAT_KEYS[key]:
                logger.warning(
                    "FORMAT/%s is declared Number=%s, expected Number=%s",
                    key, number, TYPED_FORMAT_KEYS[key],
                )

    def _parse_definitions(
        self, header_lines: list[str], pattern: re.Pattern
    ) -> dict[str, dict[str, str]]:
        definitions = {}
        for line in header_lines:
            match = pattern.match(line)
            if match:
                field_def = self._parse_field_definition(match.group(1))
                if field_def:
                    definitions[field_def['ID']] = {
                        k: v for k, v in field_def.items() if k != 'ID'
                    }
        return definitions

    def _parse_field_definition(self, field_string: str) -> dict[str, str] | None:
        """Parse a field definition string like 'ID=AC,Number=A,Type=Integer,Description="..."'"""
        field_def = {}

        # Quoted descriptions may contain commas
        parts = []
        current_part = ""
        in_quotes = False

        for char in field_string:
            if char == '"':
                in_quotes = not in_quotes
                current_part += char
            elif char == ',' and not in_quotes:
                parts.append(current_part)
                current_part = ""
            else:
                current_part += char

        if current_part:
            parts.append(current_part)

        for part in parts:
            if '=' in part:
                key, value = part.split('=', 1)
                if key == 'Description' and value.startswith('"') and value.endswith('"'):
                    value = value[1:-1]
                field_def[key] = value

        return field_def if 'ID' in field_def else None


def normalize_allele(bases: str, is_reference: bool = False) -> Allele:
    """Build an Allele, mapping the ``<*>`` spelling onto ``<NON_REF>``."""
    if bases == STAR_SYMBOL:
        bases = NON_REF_SYMBOL
    return Allele(bases, is_reference=is_reference)


def int_vector(values: Any, key: str, locus: str) -> tuple[int, ...] | None:
    """Convert one sample's cyvcf2 integer row into a tuple.

    Returns None when the value is missing; partially missing vectors are
    malformed.
    """
    if values is None:
        return None
    row = [int(v) for v in values if int(v) != INT32_VECTOR_END]
    if not row or all(v == INT32_MISSING for v in row):
        return None
    if any(v == INT32_MISSING for v in row):
        raise MalformedSiteError(f"{key} has missing entries at position {locus}: {row}")
    return tuple(row)


def int_scalar(values: Any) -> int | None:
    if values is None:
        return None
    value = int(values[0]) if hasattr(values, '__len__') else int(values)
    if value in (INT32_MISSING, INT32_VECTOR_END):
        return None
    return value


def parse_strand_bias(value: Any, key: str, locus: str) -> tuple[int, int, int, int] | None:
    """Validate a 4-entry strand-bias table from INFO or FORMAT.

    Raises:
        MalformedSiteError: If the table has the wrong length or a non-integer entry.
    """
    if value is None:
        return None
    if isinstance(value, str):
        entries = value.replace('|', ',').split(',')
    elif hasattr(value, '__len__'):
        entries = list(value)
    else:
        entries = [value]
    try:
        table = tuple(int(e) for e in entries)
    except (TypeError, ValueError) as e:
        raise MalformedSiteError(
            f"{key} must hold {STRAND_BIAS_TABLE_LENGTH} integers at position {locus}, "
            f"got {value!r}"
        ) from e
    if len(table) != STRAND_BIAS_TABLE_LENGTH:
        raise MalformedSiteError(
            f"{key} must hold {STRAND_BIAS_TABLE_LENGTH} integers at position {locus}, "
            f"got {len(table)}"
        )
    return table


def _info_number(value: Any) -> float | None:
    """First value of a numeric INFO entry; integers stay integers."""
    if value is None:
        return None
    if hasattr(value, '__len__') and not isinstance(value, str):
        value = value[0]
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return float(value)


class SiteParser:
    """Converts cyvcf2 variants into SiteRecord objects."""

    def __init__(self, samples: list[str]):
        self.samples = samples

    def parse_site(self, variant) -> SiteRecord:
        """Parse a cyvcf2 variant into a SiteRecord."""
        columns = str(variant).rstrip('\n').split('\t')
        contig = variant.CHROM
        position = variant.POS
        locus = f"{contig}:{position}"

        alleles = [normalize_allele(variant.REF, is_reference=True)]
        alleles.extend(normalize_allele(alt) for alt in variant.ALT)

        info = {k: v for k, v in dict(variant.INFO).items() if k not in TYPED_INFO_KEYS}
        depth = _info_number(variant.INFO.get(DEPTH_KEY))
        variant_depth = _info_number(variant.INFO.get(VARIANT_DEPTH_KEY))

        filter_column = columns[6] if len(columns) > 6 else '.'

        return SiteRecord(
            contig=contig,
            position=position,
            alleles=alleles,
            genotypes=self._parse_genotypes(variant, columns, alleles, locus),
            id=variant.ID,
            qual=variant.QUAL,
            filters=[] if filter_column == '.' else filter_column.split(';'),
            qual_approx=_info_number(variant.INFO.get(QUAL_APPROX_KEY)),
            variant_depth=int(variant_depth) if variant_depth is not None else None,
            depth=int(depth) if depth is not None else None,
            strand_bias_table=parse_strand_bias(
                variant.INFO.get(SB_TABLE_KEY), SB_TABLE_KEY, locus
            ),
            info=info,
        )

    def _parse_genotypes(
        self, variant, columns: list[str], alleles: list[Allele], locus: str
    ) -> list[GenotypeRecord]:
        if not self.samples:
            return []

        format_keys = columns[8].split(':') if len(columns) > 8 else []
        arrays = {
            key: self._safe_format(variant, key)
            for key in TYPED_FORMAT_KEYS
            if key != GENOTYPE_KEY and key in format_keys
        }
        gt_array = variant.genotypes if GENOTYPE_KEY in format_keys else None

        genotypes = []
        for sample_idx, sample_name in enumerate(self.samples):
            raw_values = columns[9 + sample_idx].split(':') if len(columns) > 9 + sample_idx else []
            attributes = {
                k: v for k, v in zip(format_keys, raw_values)
                if k not in TYPED_FORMAT_KEYS
            }

            def row(key, idx=sample_idx):
                array = arrays.get(key)
                return None if array is None else array[idx]

            pls = int_vector(row(LIKELIHOODS_KEY), LIKELIHOODS_KEY, locus)
            genotypes.append(GenotypeRecord(
                sample=sample_name,
                alleles=self._parse_gt(gt_array, sample_idx, alleles, locus),
                phased=bool(gt_array[sample_idx][-1]) if gt_array else False,
                likelihoods=FullLikelihoods(pls) if pls is not None else None,
                allele_depths=int_vector(row(ALLELE_DEPTHS_KEY), ALLELE_DEPTHS_KEY, locus),
                depth=int_scalar(row(DEPTH_KEY)),
                gq=int_scalar(row(GENOTYPE_QUALITY_KEY)),
                strand_bias=parse_strand_bias(
                    int_vector(row(STRAND_BIAS_BY_SAMPLE_KEY), STRAND_BIAS_BY_SAMPLE_KEY, locus),
                    STRAND_BIAS_BY_SAMPLE_KEY,
                    locus,
                ),
                min_depth=int_scalar(row(MIN_DP_KEY)),
                attributes=attributes,
            ))
        return genotypes

    def _parse_gt(
        self, gt_array, sample_idx: int, alleles: list[Allele], locus: str
    ) -> tuple[Allele, ...]:
        if not gt_array:
            return (NO_CALL, NO_CALL)
        indices = gt_array[sample_idx][:-1]
        called = []
        for index in indices:
            if index < 0:
                called.append(NO_CALL)
            elif index < len(alleles):
                called.append(alleles[index])
            else:
                raise MalformedSiteError(
                    f"GT allele index {index} out of range for sample "
                    f"{self.samples[sample_idx]} at position {locus}"
                )
        return tuple(called)

    def _safe_format(self, variant, key: str):
        """Safely get FORMAT field array."""
        try:
            return variant.format(key)
        except KeyError:
            return None


class VCFSiteReader:
    """Streams SiteRecords from a VCF file."""

    def __init__(self, vcf_path: Path | str):
        self.vcf_path = Path(vcf_path)
        self._vcf = VCF(str(self.vcf_path))
        self.samples: list[str] = list(self._vcf.samples)
        self.raw_header: str = self._vcf.raw_header

        header_parser = VCFHeaderParser()
        header_lines = self.header_lines
        self.info_fields = header_parser.parse_info_fields(header_lines)
        self.format_fields = header_parser.parse_format_fields(header_lines)
        header_parser.validate_typed_format_fields(self.format_fields)

        self._site_parser = SiteParser(self.samples)

    @property
    def header_lines(self) -> list[str]:
        return [line for line in self.raw_header.splitlines() if line]

    def __iter__(self) -> Iterator[SiteRecord]:
        for variant in self._vcf:
            yield self._site_parser.parse_site(variant)

    def close(self) -> None:
        self._vcf.close()

    def __enter__(self) -> "VCFSiteReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
