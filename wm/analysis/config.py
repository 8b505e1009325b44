# wm/analysis/config.py

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SyncConfig:
    """
    Configuration for attaching GPS positions to observations.

    Attributes
    ----------
    tolerance_s
        Maximum time (s) between an observation and a fix for that fix to be
        used for interpolation or direct assignment.
    fallback_window_s
        Maximum time (s) to search for a last-known position when nothing lies
        within `tolerance_s`. None means unbounded.
    """
    tolerance_s:       float           = 5.0
    fallback_window_s: Optional[float] = 300.0


@dataclass
class EstimatorConfig:
    """
    Configuration for the per-access-point position estimate.

    Attributes
    ----------
    weight_base
        Base of the dBm → weight conversion, ``w = base ** (rssi / 10)``.
    dedupe_timestamps
        Collapse positioned observations sharing a timestamp before weighting.
    min_separation_m
        Drop samples closer than this (m) to a stronger kept sample. 0 disables.
    """
    weight_base:       float = 10.0
    dedupe_timestamps: bool  = False
    min_separation_m:  float = 0.0

    def __post_init__(self) -> None:
        if self.weight_base <= 0:
            raise ValueError(f"weight_base must be positive, got {self.weight_base}")


@dataclass
class FilterConfig:
    """
    Configuration for the interest filter.

    Attributes
    ----------
    enabled
        When False every positioned record passes.
    min_observations
        Minimum number of observations a record needs. None disables.
    require_password
        Require a bound password (see `allow_open`).
    allow_open
        Let Open and WEP networks through without a password.
    """
    enabled:          bool          = False
    min_observations: Optional[int] = None
    require_password: bool          = True
    allow_open:       bool          = True


@dataclass
class PipelineConfig:
    """
    Configuration threaded through a full mapping run.
    """
    sync:      SyncConfig      = field(default_factory=SyncConfig)
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    workers:   int             = 1

    @classmethod
    def driving(cls):
        """Preset for vehicle mode (default thresholds)."""
        return cls()

    @classmethod
    def walking(cls):
        """Preset for pedestrian mode (slower movement, wider time windows)."""
        return cls(
            sync=SyncConfig(tolerance_s=15.0, fallback_window_s=900.0),
            estimator=EstimatorConfig(min_separation_m=0.0),
        )
