# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Fallback speeds used for ETA when a fix reports no usable speed
# ---------------------------------------------------------------------------

PEDESTRIAN_FALLBACK_SPEED_MPS: float = 5.0
VEHICLE_FALLBACK_SPEED_KMH: float = 50.0
VEHICLE_FALLBACK_SPEED_MPS: float = VEHICLE_FALLBACK_SPEED_KMH * 1000 / 3600


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Progress tracking
    min_movement_m: float = 5.0            # fixes closer than this to the last accepted one are dropped
    maneuver_threshold_m: float = 30.0     # distance to a step anchor that triggers an advance

    # ETA
    fallback_speed_mps: float = PEDESTRIAN_FALLBACK_SPEED_MPS

    # Position feed
    fallback_timeout_s: float = 30.0       # bounded wait for a fresh fix after a stream error

    # Logging
    log_positions: bool = True             # dump every accepted update through logging

    def __post_init__(self) -> None:
        if self.fallback_speed_mps <= 0:
            raise ValueError("fallback_speed_mps must be positive")
        if self.min_movement_m < 0:
            raise ValueError("min_movement_m must not be negative")
