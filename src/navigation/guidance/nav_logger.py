# nav_logger.py
# Human-readable dump of every accepted position update.
# Writes through the standard logging module only; nothing is persisted.

import logging
from typing import Optional

from .models import Fix, NavigationSnapshot
from .nav_config import NavConfig

# Standard Python logger: configure at app entry point if needed
logger = logging.getLogger(__name__)


class PositionLogger:
    """
    Logs raw and snapped positions, speed, accuracy, distance and bearing.

    Args:
        config: NavConfig instance; log_positions sets the initial state.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self.enabled = self.config.log_positions

    def toggle(self) -> bool:
        """Flip position logging on/off and return the new state."""
        self.enabled = not self.enabled
        logger.info(f"Position logging {'enabled' if self.enabled else 'disabled'}")
        return self.enabled

    def log_update(self, fix: Fix, snapshot: NavigationSnapshot) -> None:
        """
        Log a single accepted update.

        Args:
            fix:      Raw fix as received from the feed.
            snapshot: Session state after the fix was applied.
        """
        if not self.enabled:
            return
        snapped = snapshot.position
        logger.info(
            "Position update: raw=(%.6f, %.6f) snapped=(%.6f, %.6f) "
            "speed=%s accuracy=%s remaining=%.2f m eta=%d min bearing=%.1f°",
            fix.lat, fix.lon,
            snapped.lat if snapped else fix.lat,
            snapped.lon if snapped else fix.lon,
            f"{fix.speed_mps} m/s" if fix.speed_mps is not None else "n/a",
            f"{fix.accuracy_m} m" if fix.accuracy_m is not None else "n/a",
            snapshot.distance_to_destination_m,
            int(snapshot.eta.total_seconds() // 60),
            snapshot.bearing_deg,
        )
