"""Ledger partitions: one raw and one standardized tab per data source."""

import re
from dataclasses import dataclass

from coach_ledger.models.recording import DataSource, normalize_data_source

TAB_PREFIXES: dict[str, str] = {
    DataSource.ZOOM_API.value: "Zoom API",
    DataSource.WEBHOOK.value: "Webhook",
    DataSource.GOOGLE_DRIVE.value: "Drive Import",
}

# Characters Google Sheets rejects in tab titles
_INVALID_TAB_CHARS = re.compile(r"[\[\]:*?/\\]")
MAX_TAB_PREFIX = 80


@dataclass(frozen=True)
class Partition:
    """Pair of ledger tabs owned by one data source."""

    data_source: str
    raw: str
    standardized: str


def partition_for(data_source_tag: str) -> Partition:
    """Partition for a raw or canonical data source tag.

    Unknown tags get a pair of their own named after the tag, so two
    different sources never share tabs.
    """
    source = normalize_data_source(data_source_tag)
    prefix = TAB_PREFIXES.get(source)
    if prefix is None:
        prefix = _INVALID_TAB_CHARS.sub("-", source)[:MAX_TAB_PREFIX]
    return Partition(
        data_source=source,
        raw=f"{prefix} - Raw",
        standardized=f"{prefix} - Standardized",
    )


def known_partitions() -> list[Partition]:
    return [partition_for(source) for source in TAB_PREFIXES]
