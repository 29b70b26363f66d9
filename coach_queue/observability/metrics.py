"""Prometheus counters for the mention queue.

Exposed over HTTP by the health app at /metrics.
"""

from typing import Final

from prometheus_client import Counter

MENTIONS_TOTAL: Final[Counter] = Counter(
    "coach_queue_mentions_total",
    "Chat events handled by the ingestion pipeline, by outcome",
    labelnames=("outcome",),
)

REPLIES_SENT_TOTAL: Final[Counter] = Counter(
    "coach_queue_replies_sent_total",
    "Out-of-office replies sent to message authors",
    labelnames=("coach",),
)

REPLY_FAILURES_TOTAL: Final[Counter] = Counter(
    "coach_queue_reply_failures_total",
    "Out-of-office replies that could not be delivered",
    labelnames=("coach",),
)

STORE_FAILURES_TOTAL: Final[Counter] = Counter(
    "coach_queue_store_failures_total",
    "Mention store operations that failed",
    labelnames=("operation",),
)

SUMMARIES_TOTAL: Final[Counter] = Counter(
    "coach_queue_summaries_total",
    "Daily summary results per coach, by status",
    labelnames=("status",),
)

__all__ = [
    "MENTIONS_TOTAL",
    "REPLIES_SENT_TOTAL",
    "REPLY_FAILURES_TOTAL",
    "STORE_FAILURES_TOTAL",
    "SUMMARIES_TOTAL",
]
