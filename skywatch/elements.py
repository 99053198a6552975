"""
Element Set Module

Provides the immutable ElementSet record, Two-Line Element (TLE) parsing and the
ElementSetStore that holds one validated element set per catalog object.

Parsing is delegated to the sgp4 library (WGS-72 constants) with added checks for
line structure and checksums, so malformed records are rejected here and never
reach the propagator.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sgp4.api import WGS72, Satrec

from skywatch.constants import (
    DEEP_SPACE_PERIOD_MINUTES,
    JD_1949_DEC_31,
    MINUTES_PER_DAY,
    XPDOTP,
)
from skywatch.exceptions import MalformedElementsError
from skywatch.timeutils import datetime_to_jd_fr, ensure_utc, epoch_to_datetime

logger = logging.getLogger(__name__)

TLE_LINE_LENGTH = 69
DEFAULT_MAX_AGE = timedelta(days=7)


class Regime(str, Enum):
    """Propagation branch selected from the orbital period."""

    NEAR_EARTH = "near_earth"
    DEEP_SPACE = "deep_space"


class ElementSet(BaseModel):
    """
    Mean orbital elements for one tracked object.

    Angles are in degrees, mean motion in revolutions per day and the drag term
    (B*) in inverse Earth radii. Instances are frozen and hashable; a refreshed
    catalog replaces them rather than mutating them.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    catalog_id: int = Field(ge=0)
    name: str = ""
    epoch: datetime
    inclination_deg: float = Field(ge=0.0, le=180.0)
    raan_deg: float
    eccentricity: float = Field(ge=0.0, lt=1.0)
    arg_perigee_deg: float
    mean_anomaly_deg: float
    mean_motion_rev_per_day: float = Field(gt=0.0)
    bstar: float = 0.0
    ndot: float = 0.0
    nddot: float = 0.0
    line1: Optional[str] = None
    line2: Optional[str] = None

    @field_validator("epoch")
    @classmethod
    def _epoch_in_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def from_elements(cls, **fields) -> "ElementSet":
        """
        Build and validate an element set from keyword fields.

        Raises:
            MalformedElementsError: if any field is out of range or SGP4 cannot
                initialise from the elements
        """
        catalog_id = fields.get("catalog_id")
        try:
            element_set = cls(**fields)
        except ValidationError as exc:
            raise MalformedElementsError(
                f"Invalid element set for {catalog_id}: {exc}", catalog_id
            ) from exc

        satrec = element_set.to_satrec()
        if satrec.error != 0:
            raise MalformedElementsError(
                f"SGP4 rejected element set for {catalog_id} (error {satrec.error})",
                catalog_id,
            )
        return element_set

    @property
    def period_minutes(self) -> float:
        return MINUTES_PER_DAY / self.mean_motion_rev_per_day

    @property
    def regime(self) -> Regime:
        if self.period_minutes >= DEEP_SPACE_PERIOD_MINUTES:
            return Regime.DEEP_SPACE
        return Regime.NEAR_EARTH

    def age(self, at_time: datetime) -> timedelta:
        """Time elapsed since the element epoch (negative before epoch)."""
        return ensure_utc(at_time) - self.epoch

    def to_satrec(self) -> Satrec:
        """
        Build an initialised SGP4 satellite record.

        The source TLE lines are used when available so the record matches the
        published element set exactly; otherwise the elements are fed to sgp4init.
        """
        if self.line1 and self.line2:
            return Satrec.twoline2rv(self.line1, self.line2, WGS72)

        jd, fr = datetime_to_jd_fr(self.epoch)
        satrec = Satrec()
        satrec.sgp4init(
            WGS72,
            "i",
            self.catalog_id,
            (jd - JD_1949_DEC_31) + fr,
            self.bstar,
            self.ndot / (XPDOTP * MINUTES_PER_DAY),
            self.nddot / (XPDOTP * MINUTES_PER_DAY * MINUTES_PER_DAY),
            self.eccentricity,
            math.radians(self.arg_perigee_deg),
            math.radians(self.inclination_deg),
            math.radians(self.mean_anomaly_deg),
            self.mean_motion_rev_per_day / XPDOTP,
            math.radians(self.raan_deg),
        )
        return satrec


def tle_checksum(line: str) -> int:
    """Calculate TLE checksum (digits at face value, '-' counts as 1)."""
    checksum = 0
    for char in line[:68]:
        if char.isdigit():
            checksum += int(char)
        elif char == "-":
            checksum += 1
    return checksum % 10


def parse_tle(line1: str, line2: str, name: str = "",
              verify_checksum: bool = True) -> ElementSet:
    """
    Parse TLE lines into a validated ElementSet.

    Args:
        line1: First line of TLE
        line2: Second line of TLE
        name: Optional satellite name (defaults to SAT_<catalog id>)
        verify_checksum: Reject lines whose modulo-10 checksum does not match

    Returns:
        ElementSet carrying the source lines

    Raises:
        MalformedElementsError: on structural, checksum or range errors
    """
    line1 = line1.strip()
    line2 = line2.strip()

    if not line1.startswith("1 ") or not line2.startswith("2 "):
        raise MalformedElementsError("TLE lines must start with '1 ' and '2 '")
    if len(line1) != TLE_LINE_LENGTH or len(line2) != TLE_LINE_LENGTH:
        raise MalformedElementsError(
            f"TLE lines must be {TLE_LINE_LENGTH} characters "
            f"(got {len(line1)} and {len(line2)})"
        )
    if line1[2:7] != line2[2:7]:
        raise MalformedElementsError(
            f"Catalog numbers differ between lines ({line1[2:7]!r} vs {line2[2:7]!r})"
        )

    if verify_checksum:
        for number, line in ((1, line1), (2, line2)):
            expected = tle_checksum(line)
            if not line[68].isdigit() or int(line[68]) != expected:
                raise MalformedElementsError(
                    f"Checksum mismatch on line {number}: "
                    f"found {line[68]!r}, expected {expected}"
                )

    try:
        satrec = Satrec.twoline2rv(line1, line2, WGS72)
        epoch = epoch_to_datetime(int(line1[18:20]), float(line1[20:32]))
    except (ValueError, RuntimeError) as exc:
        raise MalformedElementsError(f"Failed to parse TLE: {exc}") from exc

    catalog_id = satrec.satnum
    return ElementSet.from_elements(
        catalog_id=catalog_id,
        name=name.strip() or f"SAT_{catalog_id}",
        epoch=epoch,
        inclination_deg=math.degrees(satrec.inclo),
        raan_deg=math.degrees(satrec.nodeo),
        eccentricity=satrec.ecco,
        arg_perigee_deg=math.degrees(satrec.argpo),
        mean_anomaly_deg=math.degrees(satrec.mo),
        mean_motion_rev_per_day=satrec.no_kozai * XPDOTP,
        bstar=satrec.bstar,
        ndot=satrec.ndot * XPDOTP * MINUTES_PER_DAY,
        nddot=satrec.nddot * XPDOTP * MINUTES_PER_DAY * MINUTES_PER_DAY,
        line1=line1,
        line2=line2,
    )


def parse_tle_catalog(text: str, verify_checksum: bool = True) -> List[ElementSet]:
    """
    Parse a catalog of 3-line (name + TLE) or bare 2-line element sets.

    Blank and unrecognised lines are skipped. A malformed record is logged and
    dropped without affecting the rest of the catalog.
    """
    lines = [ln.strip() for ln in text.encode("utf-8").decode("utf-8-sig").splitlines()]
    lines = [ln for ln in lines if ln]

    element_sets: List[ElementSet] = []
    i = 0
    while i < len(lines):
        if lines[i].startswith("1 ") and i + 1 < len(lines) and lines[i + 1].startswith("2 "):
            name, line1, line2 = "", lines[i], lines[i + 1]
            i += 2
        elif (i + 2 < len(lines) and lines[i + 1].startswith("1 ")
              and lines[i + 2].startswith("2 ")):
            name, line1, line2 = lines[i], lines[i + 1], lines[i + 2]
            # 3LE files prefix names with "0 "
            if name.startswith("0 "):
                name = name[2:]
            i += 3
        else:
            logger.debug(f"Skipping unrecognised catalog line: {lines[i]!r}")
            i += 1
            continue

        try:
            element_sets.append(parse_tle(line1, line2, name, verify_checksum))
        except MalformedElementsError as e:
            logger.warning(f"Skipping malformed element set {name or line1[2:7]!r}: {e}")

    logger.info(f"Parsed {len(element_sets)} element sets from catalog")
    return element_sets


class ElementSetStore:
    """
    Validated element sets keyed by catalog id.

    The mapping is replaced wholesale on refresh; readers iterating the store
    always see one consistent catalog.
    """

    def __init__(self, element_sets: Iterable[ElementSet] = ()):
        self._sets: Dict[int, ElementSet] = {}
        self.loaded_at: Optional[datetime] = None
        element_sets = list(element_sets)
        if element_sets:
            self.replace_all(element_sets)

    def replace_all(self, element_sets: Iterable[ElementSet]) -> None:
        """Swap in a complete new catalog."""
        fresh: Dict[int, ElementSet] = {}
        for element_set in element_sets:
            if element_set.catalog_id in fresh:
                logger.warning(
                    f"Duplicate element set for {element_set.catalog_id}; keeping the later one"
                )
            fresh[element_set.catalog_id] = element_set

        self._sets = fresh
        self.loaded_at = datetime.now(timezone.utc)
        logger.info(f"Element set store loaded with {len(fresh)} objects")

    def get(self, catalog_id: int) -> Optional[ElementSet]:
        return self._sets.get(catalog_id)

    def stale(self, at_time: datetime, max_age: timedelta = DEFAULT_MAX_AGE) -> List[ElementSet]:
        """Element sets whose epoch is older than ``max_age`` at ``at_time``."""
        return [es for es in self._sets.values() if es.age(at_time) > max_age]

    def __contains__(self, catalog_id: object) -> bool:
        return catalog_id in self._sets

    def __len__(self) -> int:
        return len(self._sets)

    def __iter__(self) -> Iterator[ElementSet]:
        return iter(list(self._sets.values()))
