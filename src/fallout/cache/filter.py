import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


def to_utc(ts: datetime) -> datetime:
    """Canonicalize ts to UTC, naive values are taken as UTC already"""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def value_allowed(value: str, allowed: List[str], exact: bool = False) -> bool:
    """
    Empty allowed list lets everything through, otherwise value has to
    contain one of the allowed substrings (or be equal to one, if exact).
    """
    if not allowed:
        return True
    for s in allowed:
        if exact and value == s or not exact and s in value:
            return True
    return False


class CacheFilter(BaseModel):
    """
        Describes what the walker is allowed to walk. All dimensions are ANDed.
    """
    # Allowed builder names, partial names are ok
    builders: List[str] = Field(default_factory=list)
    # Allowed categories, partial names are ok
    categories: List[str] = Field(default_factory=list)
    # Allowed origins, exact match
    origins: List[str] = Field(default_factory=list)
    # Allowed port names, partial names are ok
    names: List[str] = Field(default_factory=list)
    # Only entries at or after this time
    since: Optional[datetime] = None
    # Only entries strictly before this time
    before: Optional[datetime] = None

    @field_validator("builders", "categories", "origins", "names", mode="after")
    @classmethod
    def drop_empty(cls, values: List[str]) -> List[str]:
        """Blank items would allow everything as substrings, drop them"""
        return [v.strip() for v in values if v and v.strip()]

    @field_validator("since", "before", mode="after")
    @classmethod
    def canonical_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value) if value is not None else None

    @model_validator(mode="after")
    def check_time_range(self) -> "CacheFilter":
        if self.since and self.before and self.since > self.before:
            raise ValueError(f"empty time range: since {self.since} is after before {self.before}")
        return self

    def builder_allowed(self, builder: str) -> bool:
        return value_allowed(builder, self.builders)

    def category_allowed(self, category: str) -> bool:
        return value_allowed(category, self.categories)

    def origin_allowed(self, origin: str) -> bool:
        return value_allowed(origin, self.origins, exact=True)

    def name_allowed(self, name: str) -> bool:
        return value_allowed(name, self.names)

    def time_allowed(self, ts: datetime) -> bool:
        ts = to_utc(ts)
        if self.since is not None and ts < self.since:
            return False
        if self.before is not None and ts >= self.before:
            return False
        return True

    def allows(self, builder: str, origin: str, ts: Optional[datetime] = None) -> bool:
        """Whole-key check, used where the tree is not walked level by level"""
        category, _, name = origin.partition("/")
        return (
            self.builder_allowed(builder)
            and self.category_allowed(category)
            and self.origin_allowed(origin)
            and self.name_allowed(name)
            and (ts is None or self.time_allowed(ts))
        )
