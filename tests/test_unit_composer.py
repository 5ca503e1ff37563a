"""
Composer: locale tables, variant selection, fallback to the default locale and
degradation to literal keys when copy is missing.
"""

from datetime import datetime, timezone

import pytest

from rentcycle.services.composer import Composer, _pick
from rentcycle.utils.constants import NotificationType


@pytest.fixture(scope="module")
def composer():
    return Composer(default_locale="en", tz_name="UTC", base_url="https://app.example.com/")


CTX = {"contract_id": "004/2025", "car": "Toyota Corolla", "customer": "Sara Amrani",
       "owner_name": "Omar", "days": 2}


def test_english_rent_started(composer):
    comp = composer.compose(NotificationType.RENT_STARTED, "en", CTX, action_url="/rentals/r1")

    assert comp.title == "Rental Started"
    assert comp.message == "Rental #004/2025 has started"
    assert comp.action_label == "View Rental"
    assert comp.email_subject == "Rental Started - Contract #004/2025"
    assert not comp.degraded
    assert "Hi Omar," in comp.email_html
    assert 'href="https://app.example.com/rentals/r1"' in comp.email_html
    assert "- Car: Toyota Corolla" in comp.email_text


def test_french_overdue_uses_plural_variant(composer):
    one = composer.compose(NotificationType.RENT_OVERDUE, "fr", dict(CTX, days=1), variants=("one",))
    many = composer.compose(NotificationType.RENT_OVERDUE, "fr", CTX, variants=("other",))

    assert one.title == "Location en retard"
    assert one.message == "La location 004/2025 est en retard de 1 jour"
    assert many.message == "La location 004/2025 est en retard de 2 jours"


def test_locale_is_case_insensitive(composer):
    assert composer.compose(NotificationType.RENT_STARTED, "FR", CTX).locale == "fr"


def test_unknown_locale_falls_back_to_default(composer):
    comp = composer.compose(NotificationType.RENT_COMPLETED, "de", CTX)
    assert comp.title == "Rental Completed"
    assert not comp.degraded
    assert comp.has_email


def test_missing_locale_uses_default(composer):
    comp = composer.compose(NotificationType.RENT_STARTED, None, CTX)
    assert comp.locale == "en"


def test_unknown_event_degrades_to_key_and_withholds_email(composer):
    comp = composer.compose("SOMETHING_NEW", "en", CTX)

    assert comp.degraded
    assert comp.title == "Notification"
    assert comp.message == "SOMETHING_NEW.message"
    assert not comp.has_email
    assert comp.email_html is None


def test_arabic_insurance_is_right_to_left(composer):
    comp = composer.compose(NotificationType.CAR_INSURANCE_EXPIRING, "ar",
                            dict(CTX, expiry_date=datetime(2025, 6, 17, tzinfo=timezone.utc)),
                            variants=("urgent", "other"))

    assert comp.title == "التأمين سينتهي قريباً جداً!"
    assert 'dir="rtl"' in comp.email_html
    assert "17/06/2025" in comp.email_html
    assert "#ef4444" in comp.email_html


def test_insurance_medium_tier_uses_amber_accent(composer):
    comp = composer.compose(NotificationType.CAR_INSURANCE_EXPIRING, "en", dict(CTX, days=20),
                            variants=("medium", "other"))
    assert comp.title == "Insurance Expiring This Month"
    assert "#f59e0b" in comp.email_html


def test_html_body_escapes_context(composer):
    comp = composer.compose(NotificationType.RENT_STARTED, "en",
                            dict(CTX, car="<script>alert(1)</script>"))
    assert "<script>" not in comp.email_html
    assert "&lt;script&gt;" in comp.email_html


def test_missing_placeholder_is_left_as_is(composer):
    comp = composer.compose(NotificationType.RENT_STARTED, "en", {})
    assert comp.message == "Rental #{contract_id} has started"


def test_partial_locale_falls_back_per_key():
    catalog = {
        "en": {"common": {"generic_title": "Notification"},
               "RENT_STARTED": {"title": "Rental Started", "message": "Started {contract_id}"}},
        "fr": {"RENT_STARTED": {"title": "Location démarrée"}},
    }
    composer = Composer(default_locale="en", catalog=catalog)

    comp = composer.compose(NotificationType.RENT_STARTED, "fr", {"contract_id": "001/2025"})

    assert comp.title == "Location démarrée"
    assert comp.message == "Started 001/2025"
    # No email copy in either table.
    assert comp.degraded
    assert not comp.has_email


def test_pick_walks_variants_and_falls_back_to_other():
    value = {"urgent": "U", "other": {"one": "1", "other": "N"}}
    assert _pick(value, ("urgent",)) == "U"
    assert _pick(value, ("high", "one")) == "1"
    assert _pick(value, ()) == "N"
    assert _pick({"one": "x"}, ("other",)) is None
    assert _pick("plain", ("one",)) == "plain"
