"""Site-level annotations finalized from merged raw data."""

from .mapping_quality import calculate_rms, finalize_raw_mq, raw_mq_components
from .strand_bias import (
    add_sb_tables,
    decode_sb_table,
    fisher_strand_pvalue,
    fisher_strand_score,
    format_strand_stat,
    normalize_contingency_table,
    strand_odds_ratio,
)

__all__ = [
    "add_sb_tables",
    "calculate_rms",
    "decode_sb_table",
    "finalize_raw_mq",
    "fisher_strand_pvalue",
    "fisher_strand_score",
    "format_strand_stat",
    "normalize_contingency_table",
    "raw_mq_components",
    "strand_odds_ratio",
]
