"""Domain models for profiles, opportunities, matches and alerts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

OPPORTUNITY_TYPE = "opportunity"
PROFILE_TYPE = "entity"


def _join(parts: Sequence[Any]) -> str:
    return " ".join(str(part).strip() for part in parts if part and str(part).strip())


@dataclass(frozen=True)
class ContactInfo:
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""


@dataclass(frozen=True)
class CompanyProfile:
    """Business identity and capability data owned by the caller."""

    id: str
    entity_name: str = ""
    description: str = ""
    business_types: tuple[str, ...] = ()
    naics_codes: tuple[str, ...] = ()
    capabilities: tuple[str, ...] = ()
    past_performance: tuple[str, ...] = ()
    certifications: tuple[str, ...] = ()
    contact_info: ContactInfo = field(default_factory=ContactInfo)
    uei_sam: str = ""

    @property
    def vector_id(self) -> str:
        return f"profile_{self.id}"

    def embedding_text(self) -> str:
        """Concatenate the capability fields used to derive the profile vector."""

        return _join(
            [
                self.entity_name,
                self.description,
                *self.business_types,
                *self.naics_codes,
                *self.capabilities,
                *self.past_performance,
                *self.certifications,
                self.contact_info.address,
                self.contact_info.city,
                self.contact_info.state,
                self.contact_info.website,
            ]
        )

    def to_metadata(self) -> dict[str, Any]:
        return {
            "type": PROFILE_TYPE,
            "profileId": self.id,
            "title": self.entity_name,
            "description": self.description,
            "naicsCodes": ", ".join(self.naics_codes),
            "capabilities": ", ".join(self.capabilities),
            "businessTypes": ", ".join(self.business_types),
            "ueiSAM": self.uei_sam,
            "source": "company-profile",
        }


@dataclass(frozen=True)
class Opportunity:
    """A candidate record that profiles are matched against."""

    id: str
    title: str = ""
    synopsis: str = ""
    notice_type: str = ""
    naics_code: str = ""
    classification_code: str = ""
    set_aside: str = ""
    response_deadline: Optional[str] = None
    active: bool = True
    city: str = ""
    state: str = ""
    ui_link: str = ""
    tags: tuple[str, ...] = ()

    def embedding_text(self) -> str:
        return _join(
            [
                self.title,
                self.synopsis,
                self.notice_type,
                self.set_aside,
                self.naics_code,
                self.classification_code,
                self.city,
                self.state,
            ]
        )

    def to_metadata(self) -> dict[str, Any]:
        return {
            "type": OPPORTUNITY_TYPE,
            "title": self.title,
            "synopsis": self.synopsis,
            "noticeType": self.notice_type,
            "naicsCode": self.naics_code,
            "classificationCode": self.classification_code,
            "setAside": self.set_aside,
            "responseDeadline": self.response_deadline,
            "active": self.active,
            "city": self.city,
            "state": self.state,
            "uiLink": self.ui_link,
            "tags": list(self.tags),
            "source": "sam-gov",
        }

    @classmethod
    def from_metadata(cls, id: str, metadata: Mapping[str, Any] | None) -> "Opportunity":
        data = metadata or {}
        tags = data.get("tags") or ()
        return cls(
            id=id,
            title=str(data.get("title") or ""),
            synopsis=str(data.get("synopsis") or ""),
            notice_type=str(data.get("noticeType") or ""),
            naics_code=str(data.get("naicsCode") or ""),
            classification_code=str(data.get("classificationCode") or ""),
            set_aside=str(data.get("setAside") or ""),
            response_deadline=data.get("responseDeadline") or None,
            active=bool(data.get("active", True)),
            city=str(data.get("city") or ""),
            state=str(data.get("state") or ""),
            ui_link=str(data.get("uiLink") or ""),
            tags=tuple(str(tag) for tag in tags) if isinstance(tags, (list, tuple)) else (str(tags),),
        )


@dataclass(frozen=True)
class MatchResult:
    """One scored hit. `score` is the backend-native cosine similarity."""

    id: str
    score: float
    metadata: Mapping[str, Any] = field(default_factory=dict)
    opportunity: Optional[Opportunity] = None


@dataclass(frozen=True)
class SearchResponse:
    results: tuple[MatchResult, ...] = ()
    skipped: int = 0

    @property
    def total_results(self) -> int:
        return len(self.results)


@dataclass(frozen=True)
class MatchFilters:
    """Structured domain filters translated into the vector filter dialect."""

    type: Optional[str] = None
    naics_codes: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    active: Optional[bool] = None
    date_field: str = "responseDeadline"
    date_from: date | datetime | str | None = None
    date_to: date | datetime | str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def to_filters(self) -> dict[str, Any]:
        filters: dict[str, Any] = dict(self.extra)
        if self.type is not None:
            filters["type"] = {"$eq": self.type}
        if self.naics_codes:
            filters["naicsCode"] = {"$in": list(self.naics_codes)}
        if self.tags:
            filters["tags"] = {"$in": list(self.tags)}
        if self.active is not None:
            filters["active"] = {"$eq": self.active}
        date_range: dict[str, Any] = {}
        if self.date_from is not None:
            date_range["$gte"] = self.date_from
        if self.date_to is not None:
            date_range["$lte"] = self.date_to
        if date_range:
            filters[self.date_field] = date_range
        return filters


class AlertType(str, Enum):
    HIGH_MATCH = "high_match"
    NEW_OPPORTUNITY = "new_opportunity"
    DEADLINE_APPROACHING = "deadline_approaching"
    SET_ASIDE_MATCH = "set_aside_match"


class AlertPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class MatchAlert:
    """A deduplicated notice that a profile matches an opportunity above threshold."""

    id: str
    company_profile_id: str
    opportunity_id: str
    score: float
    created_at: datetime
    read: bool = False
    action_taken: Optional[str] = None
    opportunity: Optional[Opportunity] = None
    alert_type: AlertType = AlertType.NEW_OPPORTUNITY
    priority: AlertPriority = AlertPriority.MEDIUM

    @property
    def match_score(self) -> float:
        """Score on the 0-100 scale used by thresholds and messages."""
        return self.score * 100.0
