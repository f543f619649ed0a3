"""Quality checks run over a batch of normalized records."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from .import_contract import (
    CredentialImportError,
    ImportOptions,
    ImportOutcome,
    NormalizedRecord,
    parse_url,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def validate_records(records: Sequence[NormalizedRecord], check_urls: bool = True) -> List[str]:
    """Return human-readable warnings, prefixed with the 1-based row number.

    A record can produce several warnings; nothing is modified. Password
    length is measured in UTF-8 bytes.
    """

    warnings: List[str] = []
    for row_number, record in enumerate(records, start=1):
        prefix = f"Row {row_number}: "
        if not record.site.strip():
            warnings.append(prefix + "missing site")
        if not record.username.strip():
            warnings.append(prefix + "missing username")
        if not record.password.strip():
            warnings.append(prefix + "missing password")
        if len(record.password.encode("utf-8")) < MIN_PASSWORD_LENGTH:
            warnings.append(prefix + f"weak password (fewer than {MIN_PASSWORD_LENGTH} characters)")
        if check_urls and record.url and parse_url(record.url) is None:
            warnings.append(prefix + f"invalid url: {record.url}")
    return warnings


def find_duplicates(records: Sequence[NormalizedRecord]) -> List[Tuple[int, int]]:
    """Return every (i, j) pair, i < j, sharing a case-insensitive site and username."""

    groups: Dict[Tuple[str, str], List[int]] = defaultdict(list)
    for index, record in enumerate(records):
        groups[record.dedupe_key()].append(index)

    pairs: List[Tuple[int, int]] = []
    for indices in groups.values():
        for position, first in enumerate(indices):
            for second in indices[position + 1:]:
                pairs.append((first, second))
    pairs.sort()
    return pairs


def build_import_outcome(
    records: Sequence[NormalizedRecord],
    existing: Iterable[NormalizedRecord] = (),
    options: ImportOptions = ImportOptions(),
) -> ImportOutcome:
    """Decide which records of a parsed batch would be imported."""

    seen: Set[Tuple[str, str]] = {record.dedupe_key() for record in existing}
    admitted: List[NormalizedRecord] = []
    duplicates: List[NormalizedRecord] = []
    skipped = 0

    for record in records:
        key = record.dedupe_key()
        if key in seen:
            duplicates.append(record)
            if options.skip_duplicates:
                skipped += 1
                continue
        seen.add(key)
        if not options.import_notes and record.notes is not None:
            record = replace(record, notes=None)
        admitted.append(record)

    logger.info(
        "Import outcome: %d admitted, %d skipped, %d duplicates",
        len(admitted),
        skipped,
        len(duplicates),
    )
    return ImportOutcome(
        success=True,
        imported=len(admitted),
        skipped=skipped,
        errors=tuple(),
        warnings=tuple(validate_records(records, check_urls=options.validate_urls)),
        duplicates=tuple(duplicates),
        records=tuple(admitted),
    )


def failed_outcome(error: CredentialImportError) -> ImportOutcome:
    return ImportOutcome(
        success=False,
        imported=0,
        skipped=0,
        errors=(error.detail,),
        warnings=tuple(),
        duplicates=tuple(),
    )
