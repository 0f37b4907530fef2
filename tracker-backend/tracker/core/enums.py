from enum import Enum

class LogEntryStatus(str, Enum):
    # Initial state
    PROCESSING = "processing"

    # Terminal states
    COMPLETED = "completed"
    NEEDS_ASSOCIATION = "needs_association"  # terminal until a video is supplied
    FAILED = "failed"

class ChangeSource(str, Enum):
    MANUAL = "manual"
    TRANSCRIPT = "transcript"
    IMPORT = "import"
    SYNC = "sync"

class AuditEntity(str, Enum):
    VIDEO = "Video"
    MANUAL_FIELDS = "VideoManualFields"
    PLATFORM_METRICS = "VideoPlatformMetrics"
    PLATFORM_POST = "VideoPlatformPost"

class ImportStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

class SyncStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"

class ResolutionOutcome(str, Enum):
    LINKED = "LINKED"
    NEEDS_ASSOCIATION = "NEEDS_ASSOCIATION"
    UNLINKED = "UNLINKED"
