"""Network statistics engine components.

Modules:
    adapters: Adapter enumeration and counter sources (psutil)
    sampler: Counter sampling, deltas and speeds
    resolver: Primary adapter resolution (Auto selection)
    aggregation: Hourly/daily usage buckets
    downsample: LTTB downsampling for charts
    utils: Formatting helpers

Example:
    >>> from monitor import PsutilCounterSource, SpeedSampler
    >>> sampler = SpeedSampler(PsutilCounterSource())
    >>> samples = sampler.sample()
"""
from .adapters import AdapterCounters, AdapterCounterSource, AdapterInfo, PsutilCounterSource
from .aggregation import AggregationEngine, BucketUpdate
from .downsample import downsample
from .resolver import AdapterDisplayItem, AdapterResolver, Resolution, SecondaryAdapterInfo
from .sampler import AdapterSessionState, Sample, SpeedSampler
from .utils import SpeedUnit, format_bytes, format_speed

__all__ = [
    # Adapters
    "AdapterCounterSource",
    "AdapterCounters",
    "AdapterInfo",
    "PsutilCounterSource",
    # Sampling
    "Sample",
    "AdapterSessionState",
    "SpeedSampler",
    # Resolution
    "AdapterDisplayItem",
    "AdapterResolver",
    "Resolution",
    "SecondaryAdapterInfo",
    # Aggregation
    "AggregationEngine",
    "BucketUpdate",
    # Downsampling
    "downsample",
    # Utilities
    "SpeedUnit",
    "format_bytes",
    "format_speed",
]
