"""
seeds.py
--------
Populate the store with one demo organization whose rents and vehicles hit
every job: a reservation about to start, an active rent due back tomorrow,
an overdue rent, a returned rent waiting to complete and a car whose
insurance runs out this week.

Usage:
    $ python seeds.py
    $ flask --app rentcycle run-job lifecycle
"""

from datetime import timedelta

from rentcycle import create_app, get_engine
from rentcycle.models.store import Store
from rentcycle.services.common import _now
from rentcycle.utils.constants import RentStatus


def ensure_owner(store: Store, email: str, name: str, locale: str = "en") -> str:
    """Return the id of the user with `email`, creating it if needed (idempotent)."""
    for u in store.users.values():
        if u.get("email") == email:
            u.update({"name": name, "locale": locale})
            return u["user_id"]
    return store.create_user(name, email=email, locale=locale)


def main():
    app = create_app()
    with app.app_context():
        store = get_engine(app).store
        now = _now()

        owner_id = ensure_owner(store, "owner@example.com", "Demo Owner")
        if any(o.get("user_id") == owner_id for o in store.organizations.values()):
            print("Seed data already present; nothing to do.")
            return
        org_id = store.create_organization("Demo Rentals", owner_id)

        # ---- Demo vehicles ----
        corolla = store.create_vehicle({
            "org_id": org_id, "make": "Toyota", "model": "Corolla", "year": 2022,
            "insurance_expiry_date": now + timedelta(days=5),
        })
        clio = store.create_vehicle({
            "org_id": org_id, "make": "Renault", "model": "Clio", "year": 2021,
            "insurance_expiry_date": now + timedelta(days=200),
        })
        customer = store.create_customer({
            "first_name": "Sara", "last_name": "Amrani",
            "phone": "+212600000000", "email": "sara@example.com",
        })

        # ---- Demo rents, one per lifecycle situation ----
        base = {"org_id": org_id, "customer_id": customer, "total_price": 1200}
        store.create_rent(dict(base, vehicle_id=corolla, status=RentStatus.RESERVED,
                               start_date=now - timedelta(minutes=5),
                               expected_end_date=now + timedelta(days=3)))
        store.create_rent(dict(base, vehicle_id=clio, status=RentStatus.ACTIVE,
                               start_date=now - timedelta(days=4),
                               expected_end_date=now + timedelta(days=1, hours=2)))
        store.create_rent(dict(base, vehicle_id=clio, status=RentStatus.ACTIVE,
                               start_date=now - timedelta(days=10),
                               expected_end_date=now - timedelta(days=2)))
        store.create_rent(dict(base, vehicle_id=corolla, status=RentStatus.ACTIVE,
                               start_date=now - timedelta(days=6),
                               expected_end_date=now - timedelta(hours=1),
                               returned_at=now - timedelta(minutes=30)))
        store.save()

        print("Seed complete.")
        print(f"Owner: owner@example.com, org {org_id}")


if __name__ == "__main__":
    main()
