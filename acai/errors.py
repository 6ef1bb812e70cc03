from __future__ import annotations

from typing import Optional


class AcaiError(Exception):
    """Base class for domain errors surfaced to the UI."""


class ValidationError(AcaiError):
    """Malformed or missing input (non-positive volumes/prices, empty selections)."""


class NotFoundError(AcaiError):
    """A referenced catalog entry, container, sale or expense does not exist."""


class InsufficientVolumeError(ValidationError):
    def __init__(
        self,
        container_id: int,
        needed_ml: float,
        available_ml: float,
        label: Optional[str] = None,
    ) -> None:
        self.container_id = int(container_id)
        self.label = label
        self.needed_ml = float(needed_ml)
        self.available_ml = float(available_ml)
        self.shortfall_ml = max(0.0, self.needed_ml - self.available_ml)

        name = f"Pote #{self.container_id}" + (f" ({label})" if label else "")
        super().__init__(
            f"{name} does not have enough volume: needs {self.needed_ml:.0f} ml, "
            f"has {self.available_ml:.0f} ml (short by {self.shortfall_ml:.0f} ml)."
        )


class StoreError(AcaiError):
    """
    The database call failed (I/O, constraint violation, locked DB...).
    Multi-step writes run in a transaction, so the store is rolled back when
    this is raised from inside one.
    """
