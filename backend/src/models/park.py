"""Park (site) data models."""

from enum import Enum

from pydantic import Field

from .base import RecordModel


class SurfaceType(str, Enum):
    SMOOTH_CONCRETE = "smooth_concrete"
    ROUGH_CONCRETE = "rough_concrete"
    ASPHALT = "asphalt"
    COATED = "coated"


class SunExposure(str, Enum):
    FULL_SUN = "full_sun"
    PARTIAL_SHADE = "partial_shade"
    FULL_SHADE = "full_shade"


class Drainage(str, Enum):
    EXCELLENT = "excellent"
    AVERAGE = "average"
    POOR = "poor"


class Location(RecordModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Park(RecordModel):
    """Static attributes of a park. Unset drying attributes use neutral modifiers."""

    slug: str = Field(..., pattern=r"^[a-z0-9-]+$")
    name: str
    borough: str | None = None
    location: Location | None = None
    park_type: str | None = None
    surface_type: SurfaceType | None = None
    sun_exposure: SunExposure | None = None
    drainage: Drainage | None = None
    covered_pct: float | None = Field(None, ge=0, le=100)
    timezone: str = Field(default="America/New_York", description="IANA timezone")
