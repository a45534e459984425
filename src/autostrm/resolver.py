"""Resolve one ranked candidate into library output.

For a candidate with a title the steps are:

1. look the title up when the filename carried no year, adopting the year
   the catalog returns;
2. reuse an existing metadata sidecar for ``Title (Year)`` if there is one;
3. otherwise fetch metadata (unless step 1 already did) and write the
   sidecar, failing the candidate when the catalog has nothing;
4. write the stream reference, which is a no-op when its content is
   unchanged.

A failed candidate is reported through ``CandidateOutcome.success``; only
persistence problems raise.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .logging_utils import render_fields_block
from .metadata import MetadataProvider
from .models import CandidateOutcome, EnrichmentRecord, ParsedIdentity
from .outputs import OutputProvider
from .utils import strip_extension

LOGGER = logging.getLogger(__name__)

FAILED = CandidateOutcome(success=False)


def resolve_candidate(
    candidate: ParsedIdentity,
    *,
    output: OutputProvider,
    provider: MetadataProvider,
    output_dir: Path,
    language: str,
) -> CandidateOutcome:
    LOGGER.info(
        render_fields_block(
            "Resolving Candidate",
            {
                "File": candidate.file.filename,
                "Title": candidate.title,
                "Year": candidate.year or "unknown",
                "Rule": candidate.rule_name or "fallback",
            },
        )
    )

    title = candidate.title
    if not title:
        LOGGER.debug(render_fields_block("Candidate Has No Title", {"File": candidate.file.filename}, pad_top=False))
        return FAILED

    media_type = candidate.media_type
    year = candidate.year or ""
    enrichment: EnrichmentRecord | None = None

    if not year:
        enrichment = provider.fetch_info(candidate)
        if enrichment is not None and enrichment.year:
            year = enrichment.year

    metadata_existed = output.metadata_exists(output_dir, title, year, media_type)
    if metadata_existed:
        LOGGER.info(
            render_fields_block(
                "NFO Already Present",
                {"Title": title, "Year": year or "unknown", "Output": output_dir},
            )
        )
    else:
        if enrichment is None:
            enrichment = provider.fetch_info(candidate)
        if enrichment is None:
            LOGGER.warning(
                render_fields_block(
                    "No Metadata Found",
                    {"Title": title, "Year": year or "unknown", "Provider": provider.config.name},
                )
            )
            return FAILED
        output.write_metadata_file(output_dir, title, year, media_type, language, enrichment)

    output.write_reference_file(
        output_dir,
        title,
        year,
        strip_extension(candidate.file.filename),
        candidate.file.visit_url,
    )

    LOGGER.info(render_fields_block("Candidate Resolved", {"File": candidate.file.filename, "Title": title, "Year": year}))
    return CandidateOutcome(success=True, metadata_existed=metadata_existed, year=year, enrichment=enrichment)
