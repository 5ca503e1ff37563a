from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from rentcycle.utils.constants import VehicleStatus


@dataclass
class Vehicle:
    """
    Vehicle subset read by the engine: identity, label fields for copy,
    insurance expiry and active flag.
    """
    vehicle_id: str
    org_id: str
    make: str
    model: str
    year: Optional[int] = None
    insurance_expiry_date: Optional[datetime] = None
    status: str = VehicleStatus.ACTIVE

    @property
    def label(self) -> str:
        return f"{self.make} {self.model}".strip()

