"""
Predefined stat catalog.

Starter stats (Strength, Wisdom, ...) are defined in
``data/predefined_stats.yaml`` and loaded once with PyYAML. Entries are
validated with the same rules as user-created stats, so a bad edit to the
YAML fails loudly on first use instead of producing invalid rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from liferpg.core.logging.logger import get_logger
from liferpg.core.validation.input_validator import InputValidator
from liferpg.domain.models.stat import ExampleActivity

logger = get_logger(__name__)

CATALOG_PATH = Path(__file__).resolve().parent / "data" / "predefined_stats.yaml"


@dataclass(frozen=True)
class PredefinedStat:
    name: str
    description: str
    example_activities: Tuple[ExampleActivity, ...]

    def activities_payload(self) -> List[Dict[str, Any]]:
        return [activity.to_dict() for activity in self.example_activities]


def _parse_entry(raw: Any, index: int) -> PredefinedStat:
    if not isinstance(raw, dict):
        raise ValueError(f"Catalog entry {index} must be a mapping, got {type(raw).__name__}")

    activities = InputValidator.validate_example_activities(raw.get("example_activities"))
    return PredefinedStat(
        name=InputValidator.validate_stat_name(raw.get("name")),
        description=(raw.get("description") or "").strip(),
        example_activities=tuple(
            ExampleActivity(description=a["description"], suggested_xp=a["suggested_xp"])
            for a in activities
        ),
    )


def load_catalog(path: Path = CATALOG_PATH) -> Tuple[PredefinedStat, ...]:
    """
    Parse a catalog YAML file.

    Raises:
        FileNotFoundError: If the file is missing
        ValueError: If the document is not shaped like ``{stats: [...]}``
        ValidationError: If an entry breaks stat validation rules
    """
    with path.open("r", encoding="utf-8") as handle:
        document = yaml.safe_load(handle)

    if not isinstance(document, dict) or not isinstance(document.get("stats"), list):
        raise ValueError(f"{path.name}: expected a top-level 'stats' list")

    entries = tuple(_parse_entry(raw, idx) for idx, raw in enumerate(document["stats"]))

    logger.debug(
        "Loaded predefined stat catalog",
        extra={"file": path.name, "entry_count": len(entries)},
    )

    return entries


@lru_cache(maxsize=1)
def get_predefined_stats() -> Tuple[PredefinedStat, ...]:
    return load_catalog()


def find_predefined_stat(name: str) -> Optional[PredefinedStat]:
    """Case-insensitive lookup by name; None when the catalog has no match."""
    wanted = (name or "").strip().casefold()
    for entry in get_predefined_stats():
        if entry.name.casefold() == wanted:
            return entry
    return None
