"""Live webhook ingestion: queue consumers, handler and control loop."""

from __future__ import annotations

from .handler import (
    LABELS_ATTRIBUTE,
    Envelope,
    HandleOutcome,
    MessageDecodeError,
    MessageHandler,
    QueueMessage,
    decode_envelope,
)
from .lock import PauseLock
from .queue import LiveQueue, queue_name, to_queue_message, wait_all_stopped
from .runner import LiveRunner, build_live_runner

__all__ = [
    "LABELS_ATTRIBUTE",
    "Envelope",
    "HandleOutcome",
    "LiveQueue",
    "LiveRunner",
    "MessageDecodeError",
    "MessageHandler",
    "PauseLock",
    "QueueMessage",
    "build_live_runner",
    "decode_envelope",
    "queue_name",
    "to_queue_message",
    "wait_all_stopped",
]
