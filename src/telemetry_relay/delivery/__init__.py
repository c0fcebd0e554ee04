"""
Package: delivery
Description: Batching, transport, retry scheduling and the delivery agent.
"""

from telemetry_relay.delivery.agent import DeliveryAgent
from telemetry_relay.delivery.queue import BatchQueue
from telemetry_relay.delivery.retry import RetryLedger, compute_backoff
from telemetry_relay.delivery.scheduler import AsyncioScheduler, Scheduler
from telemetry_relay.delivery.transport import HttpTransport

__all__ = [
    "AsyncioScheduler",
    "BatchQueue",
    "DeliveryAgent",
    "HttpTransport",
    "RetryLedger",
    "Scheduler",
    "compute_backoff",
]
