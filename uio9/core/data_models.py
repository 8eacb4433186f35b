"""Data models used throughout UIO9.

``Query`` is the inbound set of identity attributes, ``Finding`` is one raw
piece of evidence returned by a source adapter and ``Result`` is a finding
after correlation.  Values are created by one call and copied across
component boundaries; nothing here is shared mutable state.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from uio9.utils.validators import sanitize_value

logger = logging.getLogger(__name__)


class Confidence(Enum):
    """Confidence tiers reported by sources and re-scored by correlation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    @classmethod
    def coerce(cls, value: Any) -> "Confidence":
        """Accept an enum member or its string value (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown confidence tier: {value!r}") from None


_CONFIDENCE_RANK = {Confidence.LOW: 1, Confidence.MEDIUM: 2, Confidence.HIGH: 3}


class Attribute(Enum):
    """Query attributes, in the order attribute-tasks are created."""

    NAME = "name"
    USERNAME = "username"
    EMAIL = "email"
    PHONE = "phone"
    LOCATION = "location"
    IMAGE = "image"


TEXT_ATTRIBUTES = (
    Attribute.NAME,
    Attribute.USERNAME,
    Attribute.EMAIL,
    Attribute.PHONE,
    Attribute.LOCATION,
)


@dataclass
class Query:
    """A set of optional identity attributes to search for.

    Attributes
    ----------
    name, username, email, phone, location: Optional[str]
        Already-sanitised attribute strings.  Blank strings are treated as
        absent.
    image: Optional[bytes]
        Binary payload for reverse-image lookups.
    """

    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    image: Optional[bytes] = None

    def __post_init__(self) -> None:
        for attr in TEXT_ATTRIBUTES:
            value = getattr(self, attr.value)
            if value is not None:
                value = str(value).strip()
                setattr(self, attr.value, value or None)
        if self.image is not None and len(self.image) == 0:
            self.image = None

    def value_of(self, attribute: Attribute) -> Any:
        return getattr(self, attribute.value)

    def present_attributes(self) -> List[Attribute]:
        """Return the attributes that carry a value, in canonical order."""
        return [attr for attr in Attribute if self.value_of(attr) is not None]

    @property
    def is_empty(self) -> bool:
        return not self.present_attributes()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            attr.value: getattr(self, attr.value)
            for attr in TEXT_ATTRIBUTES
            if getattr(self, attr.value) is not None
        }
        if self.image is not None:
            data["image_bytes"] = len(self.image)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, sanitize: bool = True) -> "Query":
        """Build a query from the inbound boundary shape.

        Parameters
        ----------
        data : dict
            Mapping with any of ``name``, ``username``, ``email``, ``phone``,
            ``location`` (strings) and ``image`` (bytes).
        sanitize : bool
            Run each string through :func:`uio9.utils.validators.sanitize_value`.
        """
        values: Dict[str, Any] = {}
        for attr in TEXT_ATTRIBUTES:
            raw = data.get(attr.value)
            if raw is None or raw == "":
                continue
            values[attr.value] = sanitize_value(str(raw)) if sanitize else str(raw)
        image = data.get("image")
        if image:
            values["image"] = bytes(image)
        return cls(**values)


@dataclass
class Finding:
    """Raw output of one source lookup.

    The URL is the finding's identity for deduplication within a run.
    """

    title: str
    url: str
    source: str
    confidence: Confidence = Confidence.LOW
    description: str = ""
    last_seen: str = ""
    platform: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    attribute: Optional[Attribute] = None

    def __post_init__(self) -> None:
        if not self.url or not str(self.url).strip():
            raise ValueError("url cannot be empty")
        self.url = str(self.url).strip()

        if not self.source:
            raise ValueError("source cannot be empty")
        self.source = str(self.source).strip()

        self.confidence = Confidence.coerce(self.confidence)
        if self.attribute is not None and not isinstance(self.attribute, Attribute):
            self.attribute = Attribute(self.attribute)

        # Identity keys compare by exact string, so only trim whitespace
        for key in ("username", "email", "phone", "name"):
            value = getattr(self, key)
            if value is not None:
                setattr(self, key, str(value).strip() or None)

    def with_confidence(self, confidence: Confidence) -> "Finding":
        """Return a copy of this finding with a different confidence."""
        return replace(self, confidence=Confidence.coerce(confidence))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["confidence"] = self.confidence.value
        data["attribute"] = self.attribute.value if self.attribute else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Finding":
        """Create a finding from a dictionary.

        Raises
        ------
        ValueError
            If ``title``, ``url`` or ``source`` is missing.
        """
        missing = [key for key in ("title", "url", "source") if not data.get(key)]
        if missing:
            raise ValueError(f"Finding requires fields: {', '.join(missing)}")
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def __repr__(self) -> str:
        return (
            f"Finding(source={self.source!r}, url={self.url!r}, "
            f"confidence={self.confidence.value})"
        )


@dataclass
class Result(Finding):
    """A finding after deduplication and confidence re-scoring.

    Attributes
    ----------
    original_confidence: Optional[Confidence]
        Confidence the source reported before correlation.
    corroboration: int
        Number of other results sharing a username, email or phone.
    """

    original_confidence: Optional[Confidence] = None
    corroboration: int = 0

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.original_confidence is None:
            self.original_confidence = self.confidence
        else:
            self.original_confidence = Confidence.coerce(self.original_confidence)

    @classmethod
    def from_finding(
        cls, finding: Finding, confidence: Confidence, corroboration: int = 0
    ) -> "Result":
        values = {f.name: getattr(finding, f.name) for f in fields(Finding)}
        values["confidence"] = confidence
        return cls(
            **values,
            original_confidence=finding.confidence,
            corroboration=corroboration,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["original_confidence"] = (
            self.original_confidence.value if self.original_confidence else None
        )
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def __repr__(self) -> str:
        return (
            f"Result(source={self.source!r}, url={self.url!r}, "
            f"confidence={self.confidence.value}, corroboration={self.corroboration})"
        )


@dataclass
class GovernorState:
    """Point-in-time view of an :class:`~uio9.core.governor.AdmissionGovernor`."""

    requests_in_window: int
    window_started_at: Optional[float]
    in_flight: int
    queued: int
    requests_per_minute: int
    max_concurrent: int
    captured_at: float = field(default=0.0)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
