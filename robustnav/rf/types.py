"""
Data structures for range-based positioning.

A ranging reading is the distance measured from the agent to a radio
source whose position is known (a located anchor, e.g. a WiFi RTT access
point or a UWB beacon). Distances can be corrupted by multipath or
non-line-of-sight propagation, which is why position estimation is done
robustly.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass(frozen=True)
class RangingReading:
    """
    Distance to a located radio source.

    Attributes:
        anchor: Position of the radio source, shape (2,) or (3,). Units: m.
        distance: Measured distance from agent to anchor. Units: m.
        distance_std: Standard deviation of the distance (optional). Units: m.
        source_id: Optional identifier of the radio source.

    Example:
        >>> reading = RangingReading(anchor=[0.0, 10.0], distance=7.07,
        ...                          distance_std=0.3, source_id="ap-2")
        >>> reading.dimension
        2
    """

    anchor: np.ndarray
    distance: float
    distance_std: Optional[float] = None
    source_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate anchor shape and distance."""
        anchor = np.asarray(self.anchor, dtype=float)
        if anchor.shape not in ((2,), (3,)):
            raise ValueError(
                f"RangingReading.anchor must have shape (2,) or (3,), got {anchor.shape}"
            )
        if not np.all(np.isfinite(anchor)):
            raise ValueError("RangingReading.anchor must be finite")
        object.__setattr__(self, "anchor", anchor)

        if not np.isfinite(self.distance) or self.distance < 0.0:
            raise ValueError(
                f"RangingReading.distance must be non-negative, got {self.distance}"
            )
        object.__setattr__(self, "distance", float(self.distance))

        if self.distance_std is not None:
            if not np.isfinite(self.distance_std) or self.distance_std <= 0.0:
                raise ValueError(
                    f"RangingReading.distance_std must be positive, got {self.distance_std}"
                )

    @property
    def dimension(self) -> int:
        """Number of spatial dimensions (2 or 3)."""
        return len(self.anchor)
