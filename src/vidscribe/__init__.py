"""vidscribe — transcript acquisition and embedding pipeline for video knowledge bases."""

__version__ = "0.4.0"
