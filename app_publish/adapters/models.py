"""
Data models for store adapter operations.

This module defines the capability descriptor and the parameter and result
types shared by every store adapter.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..auth.base import AuthType


class FileType(str, Enum):
    """Build artifact types."""

    APK = "apk"
    AAB = "aab"
    IPA = "ipa"
    HAP = "hap"


class Track(str, Enum):
    """Release tracks."""

    INTERNAL = "internal"
    ALPHA = "alpha"
    BETA = "beta"
    PRODUCTION = "production"


class ReviewState(str, Enum):
    """Normalized review states reported by ``get_status``."""

    DRAFT = "draft"
    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVOKED = "revoked"
    UNKNOWN = "unknown"


class LiveState(str, Enum):
    """Normalized availability states reported by ``get_status``."""

    LIVE = "live"
    NOT_LIVE = "not_live"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class StoreCapabilities:
    """Static description of what a backend supports."""

    store_id: str
    store_name: str
    auth_method: AuthType
    supported_file_types: Tuple[str, ...]
    supports_upload: bool = True
    supports_listing: bool = False
    supports_review: bool = False
    supports_analytics: bool = False
    supports_rollback: bool = False
    supports_staged_rollout: bool = False
    max_file_size_mb: int = 4096
    requires_icp: bool = False

    def supports_file_type(self, file_type: str) -> bool:
        return file_type.lower() in self.supported_file_types

    def to_dict(self) -> Dict[str, Any]:
        """Render as a plain dictionary for discovery UIs."""
        data = asdict(self)
        data["auth_method"] = self.auth_method.value
        data["supported_file_types"] = list(self.supported_file_types)
        return data


# Upload


@dataclass
class UploadParams:
    app_id: str
    file_path: Union[str, Path]
    file_type: str
    release_type: Optional[str] = None


@dataclass
class UploadResult:
    success: bool
    build_id: Optional[str] = None
    store_ref: Optional[str] = None
    message: Optional[str] = None


# Release


@dataclass
class ReleaseParams:
    app_id: str
    build_id: str
    track: str
    version_name: str
    release_notes: Dict[str, str] = field(default_factory=dict)  # locale -> notes
    rollout_percentage: Optional[float] = None


@dataclass
class ReleaseResult:
    success: bool
    release_id: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None


# Listing


@dataclass
class ListingParams:
    app_id: str
    locale: str
    title: Optional[str] = None
    short_description: Optional[str] = None
    full_description: Optional[str] = None
    screenshots: List[str] = field(default_factory=list)
    icon: Optional[str] = None


@dataclass
class ListingResult:
    success: bool
    message: Optional[str] = None


@dataclass
class GetListingParams:
    app_id: str
    locale: Optional[str] = None


@dataclass
class Listing:
    title: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    locale: Optional[str] = None


@dataclass
class GetListingResult:
    success: bool
    listing: Optional[Listing] = None
    message: Optional[str] = None


# Release management


@dataclass
class PromoteReleaseParams:
    app_id: str
    release_id: str
    source_track: str
    target_track: str


@dataclass
class SetRolloutParams:
    app_id: str
    track: str
    rollout_percentage: float


@dataclass
class ResumeReleaseParams:
    app_id: str
    track: str


@dataclass
class ReleaseManagementResult:
    success: bool
    message: Optional[str] = None


# Review submission and status


@dataclass
class SubmitParams:
    app_id: str
    release_type: Optional[str] = None


@dataclass
class SubmitResult:
    success: bool
    submission_id: Optional[str] = None
    message: Optional[str] = None


@dataclass
class StatusResult:
    app_id: str
    store_name: str
    review_status: str
    live_status: str
    current_version: Optional[str] = None
    last_updated: Optional[str] = None


# Analytics and user reviews


@dataclass
class AnalyticsParams:
    app_id: str
    start_date: str
    end_date: str
    metrics: List[str] = field(default_factory=list)


@dataclass
class AnalyticsResult:
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None


@dataclass
class ReviewListParams:
    app_id: str
    page_size: int = 20
    page_token: Optional[str] = None


@dataclass
class ReviewItem:
    review_id: str
    author: str
    rating: int
    body: str
    date: str
    title: Optional[str] = None
    locale: Optional[str] = None


# Rollback


@dataclass
class RollbackParams:
    app_id: str
    target_version_code: Optional[str] = None
    track: Optional[str] = None


@dataclass
class RollbackResult:
    success: bool
    message: Optional[str] = None


@dataclass(frozen=True)
class Unsupported:
    """
    Result of an operation the backend does not offer.

    Always has ``success`` False; callers can tell it apart from an operation
    that ran and failed by its type.
    """

    operation: str
    backend_id: str
    message: str
    success: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
