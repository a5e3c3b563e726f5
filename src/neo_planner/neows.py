"""
Client for NASA's Near Earth Object Web Service (NeoWs).

The feed endpoint lists objects with close approaches in a date range; the
detail endpoint carries the osculating orbital elements. Responses are
validated with pydantic models and mapped to NeoTarget values.
"""

from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Union
import logging

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import CatalogError
from .orbit import OrbitElements
from .targets import NeoTarget

logger = logging.getLogger(__name__)

NEOWS_BASE_URL = "https://api.nasa.gov/neo/rest/v1"
REQUEST_TIMEOUT_SECONDS = 30


class MissDistance(BaseModel):
    model_config = ConfigDict(extra="ignore")

    astronomical: Optional[str] = None


class CloseApproach(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    close_approach_date_time: Optional[str] = Field(default=None, alias="close_approach_date_full")
    miss_distance: MissDistance = Field(default_factory=MissDistance)


class NeoFeedItem(BaseModel):
    """One object in the feed listing."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str
    absolute_magnitude_h: Optional[float] = None
    is_potentially_hazardous_asteroid: bool = False
    close_approach_data: List[CloseApproach] = Field(default_factory=list)


class NeoFeedResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    near_earth_objects: Dict[str, List[NeoFeedItem]] = Field(default_factory=dict)


class OrbitalData(BaseModel):
    """Orbital elements as published; NeoWs sends numbers as strings."""

    model_config = ConfigDict(extra="ignore")

    epoch_osculation: float
    eccentricity: float
    semi_major_axis: float
    inclination: float
    ascending_node_longitude: float
    perihelion_argument: float
    mean_anomaly: float
    mean_motion: Optional[float] = None

    @field_validator("mean_motion", mode="before")
    @classmethod
    def blank_mean_motion(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def to_elements(self) -> OrbitElements:
        return OrbitElements(
            epoch_jd=self.epoch_osculation,
            eccentricity=self.eccentricity,
            semi_major_axis_au=self.semi_major_axis,
            inclination_deg=self.inclination,
            ascending_node_deg=self.ascending_node_longitude,
            arg_periapsis_deg=self.perihelion_argument,
            mean_anomaly_deg=self.mean_anomaly,
            mean_motion_deg_per_day=self.mean_motion,
        )


class NeoDetailResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    absolute_magnitude_h: Optional[float] = None
    is_potentially_hazardous_asteroid: bool = False
    orbital_data: OrbitalData


class NeoCandidate(BaseModel):
    """Feed entry reduced to its first close approach."""

    id: str
    name: str
    h_magnitude: Optional[float] = None
    is_hazardous: bool = False
    closest_approach_au: Optional[float] = None
    closest_approach_utc: Optional[datetime] = None


def parse_close_approach_time(text: Optional[str]) -> Optional[datetime]:
    """
    Parse a NeoWs close-approach timestamp as UTC.

    Accepts ISO 8601 ("2026-01-12T03:12Z") and the feed's
    "2026-Jan-12 03:12" form; anything else gives None.
    """
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = datetime.strptime(text, "%Y-%b-%d %H:%M")
        except ValueError:
            logger.debug(f"Unparseable close approach time: {text!r}")
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _to_float(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def candidate_from_feed_item(item: NeoFeedItem) -> Optional[NeoCandidate]:
    """None for entries without close-approach data."""
    if not item.close_approach_data:
        return None
    approach = item.close_approach_data[0]
    return NeoCandidate(
        id=item.id,
        name=item.name,
        h_magnitude=item.absolute_magnitude_h,
        is_hazardous=item.is_potentially_hazardous_asteroid,
        closest_approach_au=_to_float(approach.miss_distance.astronomical),
        closest_approach_utc=parse_close_approach_time(approach.close_approach_date_time),
    )


class NeoWsClient:
    """
    Thin synchronous NeoWs client.

    No retry or backoff: HTTP and decoding failures surface as CatalogError.
    """

    def __init__(
        self,
        api_key: Optional[str],
        session: Optional[requests.Session] = None,
        base_url: str = NEOWS_BASE_URL,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")

    def _get(self, path: str, params: Dict[str, str]) -> dict:
        if not self.api_key:
            raise CatalogError("NeoWs API key is missing")

        url = f"{self.base_url}/{path}"
        try:
            response = self.session.get(
                url,
                params={**params, "api_key": self.api_key},
                headers={"Accept": "application/json"},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise CatalogError(f"NeoWs request to {url} failed: {e}") from e
        except ValueError as e:
            raise CatalogError(f"NeoWs returned invalid JSON from {url}: {e}") from e

    def fetch_feed(
        self, start_date: Union[str, date], end_date: Union[str, date]
    ) -> NeoFeedResponse:
        """Objects with close approaches between the two dates (inclusive)."""
        data = self._get("feed", {"start_date": str(start_date), "end_date": str(end_date)})
        try:
            return NeoFeedResponse.model_validate(data)
        except ValidationError as e:
            raise CatalogError(f"Unexpected NeoWs feed payload: {e}") from e

    def fetch_neo_detail(self, neo_id: str) -> NeoDetailResponse:
        data = self._get(f"neo/{neo_id}", {})
        try:
            return NeoDetailResponse.model_validate(data)
        except ValidationError as e:
            raise CatalogError(f"Unexpected NeoWs detail payload for {neo_id}: {e}") from e

    def fetch_candidates(
        self, start_date: Union[str, date], end_date: Union[str, date]
    ) -> List[NeoCandidate]:
        """
        Flatten the feed into candidates sorted by close-approach time.

        Entries without a close approach are dropped; entries without a
        parseable time sort last.
        """
        feed = self.fetch_feed(start_date, end_date)
        candidates = []
        for items in feed.near_earth_objects.values():
            for item in items:
                candidate = candidate_from_feed_item(item)
                if candidate is not None:
                    candidates.append(candidate)

        far_future = datetime.max.replace(tzinfo=timezone.utc)
        candidates.sort(key=lambda c: c.closest_approach_utc or far_future)
        logger.info(f"NeoWs feed {start_date}..{end_date}: {len(candidates)} candidates")
        return candidates

    def fetch_targets(self, candidates: List[NeoCandidate], max_targets: int) -> List[NeoTarget]:
        """Fetch orbital elements for the first ``max_targets`` candidates."""
        targets = []
        for candidate in candidates[:max(1, max_targets)]:
            detail = self.fetch_neo_detail(candidate.id)
            try:
                elements = detail.orbital_data.to_elements()
            except ValueError as e:
                logger.warning(f"Skipping {detail.name}: invalid orbital elements ({e})")
                continue
            targets.append(NeoTarget(
                id=detail.id,
                name=detail.name,
                elements=elements,
                h_magnitude=detail.absolute_magnitude_h,
                is_hazardous=detail.is_potentially_hazardous_asteroid,
                closest_approach_au=candidate.closest_approach_au,
                closest_approach_utc=candidate.closest_approach_utc,
            ))
        logger.info(f"Fetched orbital elements for {len(targets)} targets")
        return targets
