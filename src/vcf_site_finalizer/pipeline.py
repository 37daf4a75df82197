"""Run driver: read merged sites, finalize them, write the outputs."""

import logging
import time
from collections import Counter
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .aggregator import SiteAggregator
from .config import FinalizerConfig
from .vcf_parser import VCFSiteReader
from .vcf_writer import VCFSiteWriter

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def finalize_vcf(
    vcf_path: Path,
    output_path: Path,
    config: FinalizerConfig | None = None,
    output_db_path: Path | None = None,
    progress_callback: ProgressCallback | None = None,
    progress_interval: int = 1000,
) -> dict[str, Any]:
    """Finalize every site of ``vcf_path`` into ``output_path``.

    Args:
        vcf_path: Merged multi-sample VCF.
        output_path: Destination for finalized records with genotypes.
        config: Finalization settings; defaults apply when omitted.
        output_db_path: Optional destination for sites-only records with raw
            annotations.
        progress_callback: Called with (sites processed, sites written) every
            ``progress_interval`` sites and once at the end.
        progress_interval: Sites between progress callbacks.

    Returns:
        Run statistics.

    Raises:
        MalformedSiteError: If a site violates the input format; the run stops.
    """
    config = config or FinalizerConfig()
    aggregator = SiteAggregator(config)
    skipped: Counter[str] = Counter()
    processed = 0
    start_time = time.perf_counter()

    with VCFSiteReader(vcf_path) as reader:
        header_lines = reader.header_lines
        writer = VCFSiteWriter(
            output_path, header_lines, reader.samples, summarize_pls=config.summarize_pls
        )
        db_writer = (
            VCFSiteWriter(output_db_path, header_lines, samples=[])
            if output_db_path is not None
            else None
        )

        writer.open()
        if db_writer is not None:
            db_writer.open()
        try:
            for site in reader:
                processed += 1
                reason = aggregator.screen_site(site)
                if reason is not None:
                    logger.debug("Skipping site %s: %s", site.locus, reason.value)
                    skipped[reason.value] += 1
                else:
                    result = aggregator.finalize_site(site)
                    writer.write(result.site)
                    if db_writer is not None:
                        db_writer.write(result.sites_only)

                if progress_callback and processed % progress_interval == 0:
                    progress_callback(processed, writer.records_written)
        finally:
            writer.close()
            if db_writer is not None:
                db_writer.close()

    if progress_callback:
        progress_callback(processed, writer.records_written)

    elapsed = time.perf_counter() - start_time
    logger.info(
        "Finalized %d of %d sites in %.2fs", writer.records_written, processed, elapsed
    )

    return {
        "sites_processed": processed,
        "sites_written": writer.records_written,
        "sites_skipped": sum(skipped.values()),
        "skip_reasons": dict(skipped),
        "samples": len(reader.samples),
        "elapsed_seconds": elapsed,
    }
