"""Simulated biosignal feed, signal history storage and the in-process bus."""

from streams.models import SIGNAL_FIELDS, SignalReading, SignalVector
from streams.bus import StreamBus
from streams.store import InMemorySignalStore, PostgresSignalStore
from streams.synthetic import SignalFeed
from streams.upload import parse_readings_csv

__all__ = [
    "SIGNAL_FIELDS",
    "SignalReading",
    "SignalVector",
    "StreamBus",
    "InMemorySignalStore",
    "PostgresSignalStore",
    "SignalFeed",
    "parse_readings_csv",
]
