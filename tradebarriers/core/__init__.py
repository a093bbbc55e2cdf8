# Core tracker services: pure views over agreements plus the service layer
from .errors import (
    DuplicateThemeError,
    NotFoundError,
    StoreError,
    ThemeInUseError,
    TrackerError,
    ValidationError,
)
from .stats import AgreementStats, get_agreement_stats
from .deadlines import DeadlineBucket, classify_deadline, days_until_deadline, is_overdue
from .filters import (
    FilteredView,
    FilterEngine,
    FilterSpec,
    apply_filters,
    filter_options,
    matches_filters,
    search_by_title,
)
from .timeline import TimelineLayout, adjust_label_positions, build_timeline
from .activity import ActivityRange, MonthBucket, bucket_activity, flatten_history
from .kpis import KPISummary, compute_kpis
from .service import TrackerService

__all__ = [
    "TrackerError",
    "ValidationError",
    "NotFoundError",
    "ThemeInUseError",
    "DuplicateThemeError",
    "StoreError",
    "AgreementStats",
    "get_agreement_stats",
    "DeadlineBucket",
    "classify_deadline",
    "days_until_deadline",
    "is_overdue",
    "FilteredView",
    "FilterEngine",
    "FilterSpec",
    "apply_filters",
    "filter_options",
    "matches_filters",
    "search_by_title",
    "TimelineLayout",
    "adjust_label_positions",
    "build_timeline",
    "ActivityRange",
    "MonthBucket",
    "bucket_activity",
    "flatten_history",
    "KPISummary",
    "compute_kpis",
    "TrackerService",
]
