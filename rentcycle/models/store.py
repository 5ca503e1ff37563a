import atexit
import logging
import os
import pickle
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from rentcycle.exceptions import StoreUnavailableError
from rentcycle.models.rent import is_engine_transition
from rentcycle.utils.constants import RentStatus, VehicleStatus
from rentcycle.utils.filters import as_utc

logger = logging.getLogger(__name__)

# ---- Paths ----
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_DATA_PATH = BASE_DIR / "data.pkl"

COLLECTIONS = (
    "users",
    "organizations",
    "customers",
    "vehicles",
    "rents",
    "rent_counters",
    "notifications",
    "preferences",
)

# Fields compared against aware UTC instants by the jobs
RENT_INSTANTS = ("start_date", "expected_end_date", "returned_at", "created_at")
VEHICLE_INSTANTS = ("insurance_expiry_date",)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize(record: dict, fields) -> dict:
    """Coerce date/naive datetime fields of a record to aware UTC, in place."""
    for name in fields:
        if record.get(name) is not None:
            record[name] = as_utc(record[name])
    return record


class Store:
    """
    Pickle-backed record store shared by every job.

    All mutations happen under one re-entrant lock and are persisted before
    the lock is released, so a conditional update is seen by other jobs
    either entirely or not at all.
    """
    _inst = None
    _inst_lock = threading.Lock()
    _atexit_registered = False

    def __init__(self, path: str | os.PathLike | None = None):
        self.path = str(path or DEFAULT_DATA_PATH)
        self.users: dict[str, dict] = {}
        self.organizations: dict[str, dict] = {}
        self.customers: dict[str, dict] = {}
        self.vehicles: dict[str, dict] = {}
        self.rents: dict[str, dict] = {}
        self.rent_counters: dict[tuple, int] = {}
        self.notifications: dict[str, dict] = {}
        self.preferences: dict[str, dict] = {}
        self._rw = threading.RLock()

        logger.info("Using store file %s", self.path)
        self._load()

        # Automatically save on exit (skipped in test environments)
        if not Store._atexit_registered and os.getenv("RENTCYCLE_ENV") != "test":
            atexit.register(self.save)
            Store._atexit_registered = True

    # ---------- Singleton ----------
    @classmethod
    def instance(cls, path: str | os.PathLike | None = None):
        """Return the global singleton instance of Store."""
        with cls._inst_lock:
            if cls._inst is None:
                cls._inst = Store(path or DEFAULT_DATA_PATH)
        return cls._inst

    # ---------- Persistence ----------
    def _load(self):
        """Load data from the pickle file, or start empty if unavailable or invalid."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "rb") as f:
                data = pickle.load(f)
        except Exception as e:
            logger.error("Store load failed (%s); starting empty.", e)
            return

        if isinstance(data, dict):
            for name in COLLECTIONS:
                setattr(self, name, data.get(name, {}) or {})
            for r in self.rents.values():
                _normalize(r, RENT_INSTANTS)
            for v in self.vehicles.values():
                _normalize(v, VEHICLE_INSTANTS)
            logger.info(
                "Loaded store: rents=%d, vehicles=%d, notifications=%d",
                len(self.rents), len(self.vehicles), len(self.notifications))
        else:
            # Handle incompatible data format: backup the old file and start empty
            try:
                bak = self.path + ".bak"
                os.replace(self.path, bak)
                logger.warning("Incompatible store (%s); backed up to %s. Starting empty.",
                               type(data).__name__, bak)
            except OSError as e:
                logger.error("Store backup failed: %s", e)

    def _dump(self):
        """Write the in-memory data to the pickle file safely (atomic replace)."""
        tmp = self.path + ".tmp"
        payload = {name: getattr(self, name) for name in COLLECTIONS}
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(tmp, "wb") as f:
                pickle.dump(payload, f, protocol=pickle.HIGHEST_PROTOCOL)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except (OSError, pickle.PicklingError) as e:
            raise StoreUnavailableError(f"Could not persist store to {self.path}: {e}") from e

    def save(self):
        """Thread-safe save method."""
        with self._rw:
            logger.debug("Saving store to %s", self.path)
            self._dump()

    def clear(self):
        with self._rw:
            for name in COLLECTIONS:
                getattr(self, name).clear()
            self._dump()

    # ---------- Users / organizations / customers ----------
    def create_user(self, name: str, email: str | None = None, locale: str | None = None) -> str:
        with self._rw:
            uid = str(uuid.uuid4())
            self.users[uid] = {"user_id": uid, "name": name, "email": email, "locale": locale}
            self._dump()
            return uid

    def get_user(self, user_id: str) -> dict | None:
        return self.users.get(user_id)

    def create_organization(self, name: str, user_id: str) -> str:
        with self._rw:
            oid = str(uuid.uuid4())
            self.organizations[oid] = {"org_id": oid, "name": name, "user_id": user_id}
            self._dump()
            return oid

    def get_organization(self, org_id: str) -> dict | None:
        return self.organizations.get(org_id)

    def get_org_owner(self, org_id: str) -> dict | None:
        """Resolve the owning user of an organization, or None."""
        org = self.organizations.get(org_id)
        if not org:
            return None
        return self.users.get(org.get("user_id"))

    def create_customer(self, data: dict) -> str:
        with self._rw:
            cid = str(uuid.uuid4())
            self.customers[cid] = {
                "customer_id": cid,
                "first_name": data.get("first_name", ""),
                "last_name": data.get("last_name", ""),
                "phone": data.get("phone"),
                "email": data.get("email"),
            }
            self._dump()
            return cid

    def get_customer(self, customer_id: str) -> dict | None:
        return self.customers.get(customer_id)

    # ---------- Vehicles ----------
    def create_vehicle(self, data: dict) -> str:
        """Create a new vehicle record and return its ID."""
        with self._rw:
            vid = str(uuid.uuid4())
            self.vehicles[vid] = {
                "vehicle_id": vid,
                "org_id": data["org_id"],
                "make": data.get("make", ""),
                "model": data.get("model", ""),
                "year": data.get("year"),
                "insurance_expiry_date": as_utc(data.get("insurance_expiry_date")),
                "status": data.get("status", VehicleStatus.ACTIVE),
            }
            self._dump()
            return vid

    def get_vehicle(self, vehicle_id: str) -> dict | None:
        return self.vehicles.get(str(vehicle_id))

    def update_vehicle(self, vehicle_id: str, **updates) -> bool:
        with self._rw:
            vid = str(vehicle_id)
            if vid not in self.vehicles:
                return False
            self.vehicles[vid].update(_normalize(
                {k: v for k, v in updates.items() if v is not None}, VEHICLE_INSTANTS))
            self._dump()
            return True

    def find_vehicles_by_expiry_window(self, start: datetime, end: datetime,
                                       active_only: bool = True) -> list[dict]:
        """Vehicles whose insurance expires within [start, end]."""
        with self._rw:
            found = []
            for v in self.vehicles.values():
                expiry = v.get("insurance_expiry_date")
                if expiry is None:
                    continue
                if active_only and v.get("status") != VehicleStatus.ACTIVE:
                    continue
                try:
                    inside = start <= expiry <= end
                except TypeError:
                    logger.warning("Vehicle %s has an unusable insurance_expiry_date %r; skipped",
                                   v.get("vehicle_id"), expiry)
                    continue
                if inside:
                    found.append(dict(v))
            return found

    # ---------- Rents ----------
    def _next_rent_number(self, org_id: str, year: int) -> int:
        key = (org_id, year)
        self.rent_counters[key] = self.rent_counters.get(key, 0) + 1
        return self.rent_counters[key]

    def create_rent(self, r: dict) -> str:
        """
        Create a rent record and allocate its per-organization, per-year
        contract number.
        """
        with self._rw:
            rid = str(uuid.uuid4())
            r = _normalize(dict(r), RENT_INSTANTS)
            created = r.get("created_at") or _utcnow()
            year = r.get("year") or created.year
            r.update({
                "rent_id": rid,
                "rent_number": r.get("rent_number") or self._next_rent_number(r["org_id"], year),
                "year": year,
                "status": r.get("status", RentStatus.RESERVED),
                "expected_end_date": r.get("expected_end_date"),
                "returned_at": r.get("returned_at"),
                "is_deleted": bool(r.get("is_deleted", False)),
                "created_at": created,
            })
            self.rents[rid] = r
            self._dump()
            return rid

    def get_rent(self, rent_id: str) -> dict | None:
        return self.rents.get(rent_id)

    def update_rent(self, rent_id: str, updates: dict) -> bool:
        """Update an existing rent by ID (external completion, cancellation, soft delete)."""
        with self._rw:
            if rent_id in self.rents:
                self.rents[rent_id].update(_normalize(dict(updates), RENT_INSTANTS))
                self._dump()
                return True
            return False

    @staticmethod
    def _rent_matches(r: dict, status: str, field: str, lte=None, gte=None, lt=None,
                      include_deleted: bool = False) -> bool:
        if r.get("status") != status:
            return False
        if not include_deleted and r.get("is_deleted"):
            return False
        value = r.get(field)
        if value is None:
            return False
        try:
            if lte is not None and not value <= lte:
                return False
            if gte is not None and not value >= gte:
                return False
            if lt is not None and not value < lt:
                return False
        except TypeError:
            logger.warning("Rent %s has an unusable %s %r; skipped", r.get("rent_id"), field, value)
            return False
        return True

    def find_rents(self, status: str, field: str, *, lte=None, gte=None, lt=None,
                   include_deleted: bool = False) -> list[dict]:
        """
        Rents with the given status whose `field` is set and satisfies every
        bound passed. Soft-deleted rents are excluded unless asked for.
        """
        with self._rw:
            return [dict(r) for r in self.rents.values()
                    if self._rent_matches(r, status, field, lte, gte, lt, include_deleted)]

    def bulk_update_status(self, status: str, new_status: str, field: str, *, lte) -> list[dict]:
        """
        Conditionally move every non-deleted rent in `status` whose `field`
        is <= lte to `new_status`, and return the affected rows.

        The predicate is re-evaluated under the lock, so a rent can only be
        moved once. If persisting fails the change is rolled back.
        """
        if not is_engine_transition(status, new_status):
            raise ValueError(f"Not an engine transition: {status} -> {new_status}")
        with self._rw:
            matched = [r for r in self.rents.values()
                       if self._rent_matches(r, status, field, lte=lte)]
            if not matched:
                return []
            now = _utcnow()
            for r in matched:
                r["status"] = new_status
                r["status_changed_at"] = now
            try:
                self._dump()
            except StoreUnavailableError:
                for r in matched:
                    r["status"] = status
                    r.pop("status_changed_at", None)
                raise
            return [dict(r) for r in matched]

    def rents_for_vehicle(self, vehicle_id: str, status: str | None = None) -> list[dict]:
        with self._rw:
            return [dict(r) for r in self.rents.values()
                    if r.get("vehicle_id") == vehicle_id
                    and not r.get("is_deleted")
                    and (status is None or r.get("status") == status)]

    # ---------- Notifications ----------
    def insert_notification(self, record: dict) -> str | None:
        """
        Persist a notification. Returns None without writing when another
        record already carries the same dedupe_key.
        """
        with self._rw:
            key = record.get("dedupe_key")
            if key and any(n.get("dedupe_key") == key for n in self.notifications.values()):
                return None
            nid = str(uuid.uuid4())
            self.notifications[nid] = dict(record, notification_id=nid)
            try:
                self._dump()
            except StoreUnavailableError:
                del self.notifications[nid]
                raise
            return nid

    def get_notification(self, notification_id: str) -> dict | None:
        return self.notifications.get(notification_id)

    def find_notifications(self, predicate: Callable[[dict], bool]) -> list[dict]:
        with self._rw:
            return [dict(n) for n in self.notifications.values() if predicate(n)]

    def update_notifications(self, predicate: Callable[[dict], bool], updates: dict) -> int:
        with self._rw:
            hits = [n for n in self.notifications.values() if predicate(n)]
            for n in hits:
                n.update(updates)
            if hits:
                self._dump()
            return len(hits)

    def delete_notifications(self, predicate: Callable[[dict], bool]) -> list[str]:
        with self._rw:
            doomed = [nid for nid, n in self.notifications.items() if predicate(n)]
            for nid in doomed:
                del self.notifications[nid]
            if doomed:
                self._dump()
            return doomed

    # ---------- Preferences ----------
    def get_preferences(self, user_id: str) -> Optional[dict]:
        return self.preferences.get(user_id)

    def set_preferences(self, user_id: str, prefs: dict):
        with self._rw:
            self.preferences[user_id] = dict(prefs)
            self._dump()
