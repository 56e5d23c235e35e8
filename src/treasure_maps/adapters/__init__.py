"""Host integration boundaries and the in-process demo host."""

from .demo import DemoRecipient, DemoWorldHost, ImmediateScheduler, QueuedScheduler, RecordingMapHost, RecordingMapView
from .host import MainThreadScheduler, MapHost, MapView, Recipient, WorldHost

__all__ = [
    "DemoRecipient",
    "DemoWorldHost",
    "ImmediateScheduler",
    "MainThreadScheduler",
    "MapHost",
    "MapView",
    "QueuedScheduler",
    "Recipient",
    "RecordingMapHost",
    "RecordingMapView",
    "WorldHost",
]
