"""
Store adapters for app_publish.

Every backend implements the StoreAdapter contract. Operations a backend does
not offer return an ``Unsupported`` result.
"""

from .app_store import AppStoreAdapter
from .base import StoreAdapter
from .google_play import GooglePlayAdapter
from .honor import HonorAdapter
from .huawei_agc import HuaweiAgcAdapter
from .models import (
    AnalyticsParams,
    AnalyticsResult,
    FileType,
    GetListingParams,
    GetListingResult,
    Listing,
    ListingParams,
    ListingResult,
    LiveState,
    PromoteReleaseParams,
    ReleaseManagementResult,
    ReleaseParams,
    ReleaseResult,
    ResumeReleaseParams,
    ReviewItem,
    ReviewListParams,
    ReviewState,
    RollbackParams,
    RollbackResult,
    SetRolloutParams,
    StatusResult,
    StoreCapabilities,
    SubmitParams,
    SubmitResult,
    Track,
    Unsupported,
    UploadParams,
    UploadResult,
)
from .oppo import OppoAdapter
from .pgyer import PgyerAdapter
from .registry import ADAPTER_CLASSES, AdapterRegistry, BackendKind
from .tencent_myapp import TencentMyAppAdapter
from .vivo import VivoAdapter
from .xiaomi import XiaomiAdapter

__all__ = [
    # Contract
    "StoreAdapter",
    "AdapterRegistry",
    "BackendKind",
    "ADAPTER_CLASSES",
    # Backends
    "GooglePlayAdapter",
    "AppStoreAdapter",
    "HuaweiAgcAdapter",
    "HonorAdapter",
    "OppoAdapter",
    "PgyerAdapter",
    "XiaomiAdapter",
    "VivoAdapter",
    "TencentMyAppAdapter",
    # Models
    "StoreCapabilities",
    "Unsupported",
    "FileType",
    "Track",
    "ReviewState",
    "LiveState",
    "UploadParams",
    "UploadResult",
    "ReleaseParams",
    "ReleaseResult",
    "ListingParams",
    "ListingResult",
    "GetListingParams",
    "GetListingResult",
    "Listing",
    "PromoteReleaseParams",
    "SetRolloutParams",
    "ResumeReleaseParams",
    "ReleaseManagementResult",
    "SubmitParams",
    "SubmitResult",
    "StatusResult",
    "AnalyticsParams",
    "AnalyticsResult",
    "ReviewListParams",
    "ReviewItem",
    "RollbackParams",
    "RollbackResult",
]
