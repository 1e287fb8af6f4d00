"""Realtime job status propagation and the client upload queue."""

from cardiva.realtime.dispatcher import ActiveJobView, JobStatusDispatcher
from cardiva.realtime.events import ChangeEvent, ChangeType, JobNotification
from cardiva.realtime.feed import ChangeFeed, Subscription, get_change_feed
from cardiva.realtime.upload_queue import QueueFullError, UploadQueue, UploadState

__all__ = [
    "ActiveJobView",
    "ChangeEvent",
    "ChangeFeed",
    "ChangeType",
    "JobNotification",
    "JobStatusDispatcher",
    "QueueFullError",
    "Subscription",
    "UploadQueue",
    "UploadState",
    "get_change_feed",
]
