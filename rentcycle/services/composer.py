"""
Notification and email copy, resolved from per-locale template tables.

Every string lives in ``rentcycle/locales/<locale>.json`` keyed by event
type. A value is either a plain template or a mapping of variants
(``"one"``/``"other"``, ``"urgent"``/``"high"``/``"medium"``); the caller
passes the variants that apply and the composer walks the mapping with
them. Adding a language or changing copy is a data change only.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from importlib import resources
from typing import Optional, Sequence

from jinja2 import Environment, PackageLoader, select_autoescape

from rentcycle.exceptions import TranslationError
from rentcycle.utils.constants import DEFAULT_LOCALE, NotificationType, SUPPORTED_LOCALES
from rentcycle.utils.filters import fmt_local

logger = logging.getLogger(__name__)

# Which detail rows each email lists, and its accent color.
EVENT_LAYOUT = {
    NotificationType.RENT_STARTED: {
        "fields": ("contract_id", "car", "customer"),
        "accent": "#667eea",
    },
    NotificationType.RENT_COMPLETED: {
        "fields": ("contract_id", "car"),
        "accent": "#10b981",
    },
    NotificationType.RENT_OVERDUE: {
        "fields": ("contract_id", "car", "customer", "phone", "customer_email", "days_overdue"),
        "accent": "#ef4444",
    },
    NotificationType.RENT_RETURN_REMINDER: {
        "fields": ("contract_id", "car", "customer", "expected_return"),
        "accent": "#667eea",
    },
    NotificationType.CAR_INSURANCE_EXPIRING: {
        "fields": ("car", "year", "expiry_date"),
        "accent": {"urgent": "#ef4444", "high": "#ef4444", "other": "#f59e0b"},
    },
}
DEFAULT_ACCENT = "#667eea"


class _SafeDict(dict):
    """Leave unknown placeholders as-is instead of raising KeyError."""

    def __missing__(self, key):
        return "{" + key + "}"


def load_catalog(locales: Sequence[str] = SUPPORTED_LOCALES) -> dict:
    """Read the bundled locale tables. Unreadable files are logged and skipped."""
    catalog = {}
    root = resources.files("rentcycle") / "locales"
    for code in locales:
        try:
            catalog[code] = json.loads((root / f"{code}.json").read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Could not load locale table %s: %s", code, e)
    return catalog


def _pick(value, variants: Sequence[str]):
    """Walk nested variant mappings using the first matching variant, else 'other'."""
    while isinstance(value, dict):
        for v in variants:
            if v in value:
                value = value[v]
                break
        else:
            if "other" not in value:
                return None
            value = value["other"]
    return value


@dataclass
class Composition:
    locale: str
    title: str
    message: str
    action_label: Optional[str] = None
    email_subject: Optional[str] = None
    email_html: Optional[str] = None
    email_text: Optional[str] = None
    degraded: bool = False

    @property
    def has_email(self) -> bool:
        return bool(self.email_subject and self.email_html)


class Composer:
    """
    Pure (event_type, locale, context, variants) -> Composition.
    Holds no per-call state; safe to share across jobs.
    """

    def __init__(self, default_locale: str = DEFAULT_LOCALE, tz_name: str = "UTC",
                 base_url: str = "", catalog: dict | None = None):
        self.default_locale = default_locale
        self.tz_name = tz_name
        self.base_url = (base_url or "").rstrip("/")
        self.catalog = catalog if catalog is not None else load_catalog()
        self.env = Environment(
            loader=PackageLoader("rentcycle", "templates"),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["fmt_local"] = fmt_local

    # ---------- lookup ----------
    def translate(self, locale: str, section: str, key: str, variants: Sequence[str] = ()) -> str:
        """Raw template for section.key in one locale; raises TranslationError."""
        table = self.catalog.get(locale)
        if table is None:
            raise TranslationError(f"Unknown locale {locale!r}")
        value = _pick(table.get(section, {}).get(key), variants)
        if not isinstance(value, str):
            raise TranslationError(f"Missing key {section}.{key} for locale {locale!r}")
        return value

    def resolve(self, locale: str, section: str, key: str,
                variants: Sequence[str] = ()) -> tuple[str, bool]:
        """
        Template text and whether resolution fell all the way through.
        Order: recipient locale, default locale, then the literal key.
        """
        for code in dict.fromkeys((locale, self.default_locale)):
            try:
                return self.translate(code, section, key, variants), False
            except TranslationError as e:
                logger.debug("Translation miss: %s", e)
        logger.warning("No translation for %s.%s in %s or %s; using key",
                       section, key, locale, self.default_locale)
        return f"{section}.{key}", True

    def _render(self, locale, section, key, variants, values) -> tuple[str, bool]:
        template, missing = self.resolve(locale, section, key, variants)
        return template.format_map(_SafeDict(values)), missing

    def _prepare(self, context: dict) -> dict:
        values = {}
        for k, v in (context or {}).items():
            if isinstance(v, (datetime, date)):
                v = fmt_local(v, self.tz_name)
            values[k] = "" if v is None else v
        return values

    def absolute_url(self, path: Optional[str]) -> Optional[str]:
        if not path:
            return None
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}" if self.base_url else path

    # ---------- compose ----------
    def compose(self, event_type: str, locale: Optional[str], context: dict,
                variants: Sequence[str] = (), action_url: Optional[str] = None) -> Composition:
        locale = (locale or self.default_locale).lower()
        values = self._prepare(context)

        title, t_missing = self._render(locale, event_type, "title", variants, values)
        message, m_missing = self._render(locale, event_type, "message", variants, values)
        action_label, _ = self._render(locale, event_type, "action_label", variants, values)
        if t_missing:
            title = self.resolve(locale, "common", "generic_title")[0]

        comp = Composition(
            locale=locale,
            title=title,
            message=message,
            action_label=action_label,
            degraded=t_missing or m_missing,
        )
        if comp.degraded:
            # The notification is still recorded; only the email is withheld.
            return comp

        subject, s_missing = self._render(locale, event_type, "email_subject", variants, values)
        intro, i_missing = self._render(locale, event_type, "email_intro", variants, values)
        if s_missing or i_missing:
            comp.degraded = True
            return comp

        outro_tpl, o_missing = self.resolve(locale, event_type, "email_outro", variants)
        outro = "" if o_missing else outro_tpl.format_map(_SafeDict(values))
        greeting, _ = self._render(locale, "common", "greeting", (), values)
        footer, _ = self._render(locale, "common", "footer", (), values)
        direction, _ = self.resolve(locale, "common", "dir")

        layout = EVENT_LAYOUT.get(event_type, {})
        details = []
        for field in layout.get("fields", ()):
            value = values.get(field)
            if value in ("", None):
                continue
            label, _ = self.resolve(locale, "labels", field)
            details.append((label, value))
        accent = _pick(layout.get("accent", DEFAULT_ACCENT), variants) or DEFAULT_ACCENT

        page = {
            "dir": direction,
            "accent": accent,
            "heading": title,
            "greeting": greeting,
            "intro": intro,
            "details": details,
            "outro": outro,
            "action_url": self.absolute_url(action_url),
            "action_label": action_label,
            "footer": footer,
        }
        comp.email_subject = subject
        comp.email_html = self.env.get_template("email/notification.html").render(**page)
        comp.email_text = self.env.get_template("email/notification.txt").render(**page)
        return comp
