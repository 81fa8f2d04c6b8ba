"""Load the static park registry from JSON."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from models.park import Park

logger = logging.getLogger(__name__)

DATA_FILE = Path(
    os.environ.get(
        "PARKS_FILE", Path(__file__).parent.parent.parent / "data" / "parks.json"
    )
)


class ParkLoader:
    """Load and validate park definitions from a JSON file."""

    def __init__(self, data_file: Path = DATA_FILE):
        self.data_file = Path(data_file)
        self._parks: dict[str, Park] | None = None

    def load(self) -> dict[str, Park]:
        """Load parks keyed by slug. Invalid entries are logged and skipped."""
        if self._parks is None:
            if not self.data_file.exists():
                raise FileNotFoundError(f"Park data file not found: {self.data_file}")

            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)

            raw_parks: list[dict[str, Any]] = (
                data.get("parks", []) if isinstance(data, dict) else data
            )
            parks = {}
            for raw in raw_parks:
                try:
                    park = Park.model_validate(raw)
                except ValidationError as e:
                    logger.warning(
                        "Skipping invalid park %s: %s", raw.get("slug", "unknown"), e
                    )
                    continue
                parks[park.slug] = park

            self._parks = parks
            logger.info(f"Loaded {len(parks)} parks from {self.data_file}")

        return self._parks

    def get_parks(self) -> list[Park]:
        return sorted(self.load().values(), key=lambda p: p.name)

    def get_park(self, slug: str) -> Park | None:
        return self.load().get(slug)

    def slugs(self) -> set[str]:
        return set(self.load())
