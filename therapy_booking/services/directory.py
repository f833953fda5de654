"""
Therapist Directory - read-only catalog with filtered search.

The catalog is loaded once and never mutated, so concurrent readers
need no locking.
"""

import json
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from loguru import logger

from therapy_booking.config import THERAPIST_PROFILES, Settings, get_settings
from therapy_booking.models.therapist import SearchCriteria, SearchResult, Therapist


class TherapistDirectory:
    """
    Holds the therapist catalog and answers filtered queries.

    Results always preserve catalog order.
    """

    def __init__(self, therapists: Iterable[Union[Therapist, dict]]):
        self._therapists: List[Therapist] = [
            t if isinstance(t, Therapist) else Therapist(**t) for t in therapists
        ]
        self._by_id = {t.id: t for t in self._therapists}
        logger.info(f"Therapist directory loaded with {len(self._therapists)} profiles")

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TherapistDirectory":
        """
        Load a catalog from a JSON file containing a list of therapist objects.

        Args:
            path: Path to the JSON catalog

        Returns:
            A new directory
        """
        path = Path(path)
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, list):
            raise ValueError(f"Therapist catalog {path} must contain a JSON list")
        logger.info(f"Loading therapist catalog from {path}")
        return cls(data)

    def __len__(self) -> int:
        return len(self._therapists)

    def __iter__(self) -> Iterator[Therapist]:
        return iter(self._therapists)

    def get(self, therapist_id: str) -> Optional[Therapist]:
        """Get a therapist by ID."""
        return self._by_id.get(str(therapist_id))

    def search(
        self,
        criteria: Optional[SearchCriteria] = None,
        specialty: Optional[str] = None,
        day: Optional[str] = None,
    ) -> SearchResult:
        """
        Find therapists matching the criteria.

        Either pass a SearchCriteria or the individual filters. No match is
        not an error; the result is simply empty and echoes the criteria.

        Args:
            criteria: Prebuilt search criteria
            specialty: Required specialty (ignored when criteria is given)
            day: Required available day (ignored when criteria is given)

        Returns:
            SearchResult in catalog order
        """
        if criteria is None:
            criteria = SearchCriteria(specialty=specialty, day=day)

        matches = [t for t in self._therapists if criteria.matches(t)]
        logger.info(f"Search ({criteria.describe()}) matched {len(matches)} therapists")
        return SearchResult(criteria=criteria, therapists=matches)

    def distinct_specialties(self) -> List[str]:
        """All specialties across the catalog, deduplicated and sorted."""
        return sorted({s for t in self._therapists for s in t.specialties})

    def distinct_availability_days(self) -> List[str]:
        """All availability days across the catalog, deduplicated and sorted."""
        return sorted({day for t in self._therapists for day in t.availability})


def load_directory(settings: Optional[Settings] = None) -> TherapistDirectory:
    """Build a directory from the configured catalog file, or the bundled profiles."""
    settings = settings or get_settings()
    if settings.therapist_catalog_path:
        return TherapistDirectory.from_file(settings.therapist_catalog_path)
    return TherapistDirectory(THERAPIST_PROFILES)


# Singleton instance for reuse
_directory: Optional[TherapistDirectory] = None


def get_directory() -> TherapistDirectory:
    """Get the singleton therapist directory instance."""
    global _directory
    if _directory is None:
        _directory = load_directory()
    return _directory
