"""
Therapist catalog and search models.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Therapist(BaseModel):
    """
    A therapist in the catalog.

    Availability maps a day name to a range string such as "9:00 - 17:00".
    The mapping keeps the order of the source data, which decides the
    default day offered when the therapist is selected.
    """

    id: str = Field(description="Therapist identifier")
    name: str = Field(description="Display name")
    specialties: List[str] = Field(default_factory=list, description="Specialty labels")
    availability: Dict[str, str] = Field(
        default_factory=dict, description="Day name -> availability range"
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> str:
        """Catalogs may use numeric ids; keep them as strings."""
        return str(v)

    @property
    def available_days(self) -> List[str]:
        """Days in catalog order."""
        return list(self.availability)

    @property
    def first_available_day(self) -> Optional[str]:
        """The first day listed in the availability mapping."""
        return next(iter(self.availability), None)

    @property
    def specialty_summary(self) -> str:
        return ", ".join(self.specialties)

    @property
    def availability_summary(self) -> str:
        """Human-readable availability, e.g. "Monday: 9:00 - 17:00, Friday: 9:00 - 13:00"."""
        return ", ".join(f"{day}: {hours}" for day, hours in self.availability.items())

    model_config = {"frozen": True}


class SearchCriteria(BaseModel):
    """
    Filters for a therapist search. Empty values mean "any".
    """

    specialty: Optional[str] = Field(default=None, description="Required specialty")
    day: Optional[str] = Field(default=None, description="Required available day")

    @field_validator("specialty", "day", mode="before")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def is_empty(self) -> bool:
        return self.specialty is None and self.day is None

    def matches(self, therapist: Therapist) -> bool:
        """Check whether a therapist satisfies both filters."""
        if self.specialty and self.specialty not in therapist.specialties:
            return False
        if self.day and self.day not in therapist.availability:
            return False
        return True

    def describe(self) -> str:
        """Echo of the applied filters for display."""
        if self.is_empty:
            return "No filters applied"
        parts = []
        if self.specialty:
            parts.append(f"Specialty: {self.specialty}")
        if self.day:
            parts.append(f"Day: {self.day}")
        return ", ".join(parts)


class SearchResult(BaseModel):
    """
    Outcome of a directory search, with the criteria that produced it.
    """

    criteria: SearchCriteria
    therapists: List[Therapist] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.therapists

    @property
    def summary(self) -> str:
        """One-line description suitable for a results header or a no-results state."""
        if self.is_empty:
            return (
                "No therapists found matching your search criteria "
                f"({self.criteria.describe()})"
            )
        count = len(self.therapists)
        noun = "therapist" if count == 1 else "therapists"
        return f"{count} {noun} available ({self.criteria.describe()})"
