from dataclasses import dataclass
from typing import Optional

from rentcycle.utils.constants import DEFAULT_LOCALE


@dataclass
class User:
    """
    An account that can receive notifications. Only the organization owner
    is ever targeted by the engine.
    """
    user_id: str
    name: str
    email: Optional[str] = None
    locale: Optional[str] = None

    def locale_or(self, fallback: str = DEFAULT_LOCALE) -> str:
        return (self.locale or "").strip().lower() or fallback


@dataclass
class Customer:
    customer_id: str
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
