from tracker.models.video import Video
from tracker.models.manual_fields import VideoManualFields
from tracker.models.platform_metrics import VideoPlatformMetrics
from tracker.models.platform_post import VideoPlatformPost
from tracker.models.log_entry import LogEntry
from tracker.models.transcript import Transcript
from tracker.models.audit_log import AuditLogEntry
from tracker.models.import_batch import ImportBatch, ImportedRow
from tracker.models.sync_log import SyncLog
from tracker.models.channel import Channel

__all__ = [
    "Video",
    "VideoManualFields",
    "VideoPlatformMetrics",
    "VideoPlatformPost",
    "LogEntry",
    "Transcript",
    "AuditLogEntry",
    "ImportBatch",
    "ImportedRow",
    "SyncLog",
    "Channel",
]
