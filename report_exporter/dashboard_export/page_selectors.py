# File: report_exporter/dashboard_export/page_selectors.py
"""Vendor-specific UI vocabulary and selector strategy tables.

Everything that identifies a control on the dashboard lives here as data.
A markup change on the vendor side should only ever require editing this
module; the selector chain interprets these tables without branching on
vendor details.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

# Strategy kinds understood by SelectorChain.
TEXT_EXACT = "text_exact"
TEXT_FOLDED = "text_folded"
ATTRIBUTE = "attribute"
ROLE = "role"
CONTAINS_TEXT = "contains_text"
CSS = "css"
COORDINATES = "coordinates"


@dataclass(frozen=True)
class SelectorStrategy:
    name: str
    kind: str
    value: object = None
    pick: str = "first"
    unreliable: bool = False


@dataclass(frozen=True)
class LogicalTarget:
    name: str
    strategies: Tuple[SelectorStrategy, ...]
    label: Optional[str] = None


@dataclass(frozen=True)
class DashboardProfile:
    """Labels and markers of one dashboard vendor/locale."""

    frame_markers: Tuple[str, ...] = ("Conta de Anúncio",)
    login_markers: Tuple[str, ...] = (
        "Fazer login",
        "Escolha uma conta",
        "Você precisa de permissão",
        "Sign in",
        "Choose an account",
        "You need permission",
    )
    login_url_fragments: Tuple[str, ...] = (
        "accounts.google.com",
        "/servicelogin",
        "/signin",
        "consent.google",
    )
    account_filter_label: str = "Conta de Anúncio"
    search_placeholder_hint: str = "Digite"
    period_label: str = "Selecionar período"
    start_field_label: str = "Data de início"
    end_field_label: str = "Data de término"
    apply_label: str = "Aplicar"
    export_menu_label: str = "Mais opções"
    download_item_label: str = "Baixar o relatório"
    confirm_download_label: str = "Fazer download"
    default_file_name: str = "report.pdf"


DEFAULT_PROFILE = DashboardProfile()

# Account filter option list. Option labels carry the full account name in a
# title attribute; the checkbox element is the clickable ancestor.
CLIENT_OPTION_LABEL_SELECTOR = "md-checkbox span[title]"
CLIENT_OPTION_LABEL_ATTRIBUTE = "title"
CLIENT_OPTION_CLICKABLE = "xpath=ancestor::md-checkbox"
CLIENT_OPTION_CONTAINER = "md-checkbox"
CLIENT_CANDIDATE_SAMPLE_SIZE = 25

# Nearest ancestor of a date field label that holds its own calendar grid.
DATE_FIELD_CONTAINER_XPATH = "xpath=ancestor::*[.//table or .//*[@role='grid']][1]"

# "JAN. DE 2025", "Dez de 2025", "Dec 2025", "DEC OF 2025"
CALENDAR_HEADER_PATTERN = r"([A-Za-zÀ-ÿ]{3})\.?\s+(?:(?:de|of)\s+)?(\d{4})"
MONTH_ABBREVIATIONS: Dict[str, int] = {
    "JAN": 1, "FEV": 2, "FEB": 2, "MAR": 3, "ABR": 4, "APR": 4,
    "MAI": 5, "MAY": 5, "JUN": 6, "JUL": 7, "AGO": 8, "AUG": 8,
    "SET": 9, "SEP": 9, "OUT": 10, "OCT": 10, "NOV": 11, "DEZ": 12, "DEC": 12,
}
MAX_CALENDAR_STEPS = 36

# Day cells from the neighbouring months share labels with in-month days.
OUTSIDE_MONTH_CLASS_MARKERS: Tuple[str, ...] = ("outside", "other-month", "adjacent-month", "not-current")
MAX_DAY_CELLS = 42

PDF_CONTENT_TYPE = "application/pdf"

# Fixed viewport point of the report overflow menu (1400x900 viewport).
EXPORT_MENU_FALLBACK_POINT = (1368, 20)

VIEWPORT = {"width": 1400, "height": 900}
CHROMIUM_ARGS = ["--no-sandbox", "--disable-dev-shm-usage"]


@dataclass(frozen=True)
class SettleDelays:
    """Fixed pauses after actions that trigger asynchronous re-rendering.

    Everything else is expressed as a bounded poll; these only cover the gap
    between an action being acknowledged and the SPA finishing its re-render.
    Values are seconds.
    """

    # Dashboard widgets keep mounting for a few seconds after domcontentloaded.
    initial_render: float = 4.0
    # Filter panel animates open before its toggles are clickable.
    panel_open: float = 0.8
    # Select-all toggle re-renders every option row.
    panel_clear: float = 0.6
    # Search input debounces before filtering the option list.
    search: float = 0.8
    # Dashboard re-queries its widgets after the filter panel closes.
    panel_close: float = 1.5
    # Date range dialog slides in.
    period_open: float = 1.2
    # Calendar popover opens under the field label.
    calendar_open: float = 0.5
    # Month transition animation after an arrow click.
    calendar_step: float = 0.3
    # Range preview updates after a day is picked.
    day_click: float = 0.3
    # Applying the period re-runs every chart query.
    apply: float = 4.0
    # Overflow menu animates open.
    menu_open: float = 0.8
    # Download modal mounts after the menu entry is chosen.
    modal_open: float = 1.2


DEFAULT_SETTLE_DELAYS = SettleDelays()
NO_SETTLE_DELAYS = SettleDelays(**{name: 0.0 for name in SettleDelays.__dataclass_fields__})


def build_targets(profile: DashboardProfile = DEFAULT_PROFILE) -> Dict[str, LogicalTarget]:
    """Return the logical target table for ``profile``.

    Strategies are evaluated in the listed order; the first one yielding a
    visible element wins. ``label`` is the default text a strategy matches
    against and can be overridden per resolution (calendar days, field
    labels).
    """

    def _labelled(name: str, label: Optional[str], *strategies: SelectorStrategy) -> LogicalTarget:
        return LogicalTarget(name=name, label=label, strategies=tuple(strategies))

    targets = [
        _labelled(
            "account_filter_trigger",
            profile.account_filter_label,
            SelectorStrategy("exact_label", TEXT_EXACT),
            SelectorStrategy("exact_label_folded", TEXT_FOLDED),
            SelectorStrategy("title_attribute", ATTRIBUTE, "title"),
            SelectorStrategy("aria_label_attribute", ATTRIBUTE, "aria-label"),
            SelectorStrategy("container_contains_label", CONTAINS_TEXT, "div", pick="last"),
        ),
        _labelled(
            "select_all_toggle",
            None,
            SelectorStrategy("first_checkbox", CSS, CLIENT_OPTION_CONTAINER),
            SelectorStrategy("checkbox_role", ROLE, "checkbox"),
        ),
        _labelled(
            "client_search_input",
            profile.search_placeholder_hint,
            SelectorStrategy("placeholder_hint", CSS, 'input[placeholder*="{label}"]'),
            SelectorStrategy("search_input", CSS, 'input[type="search"]'),
            SelectorStrategy("search_role", ROLE, "searchbox"),
        ),
        _labelled(
            "period_trigger",
            profile.period_label,
            SelectorStrategy("exact_label", TEXT_EXACT),
            SelectorStrategy("exact_label_folded", TEXT_FOLDED),
            SelectorStrategy("aria_label_attribute", ATTRIBUTE, "aria-label"),
            SelectorStrategy("button_contains_label", CONTAINS_TEXT, "button", pick="last"),
        ),
        _labelled(
            "date_field_label",
            None,
            SelectorStrategy("exact_label", TEXT_EXACT),
            SelectorStrategy("exact_label_folded", TEXT_FOLDED),
            SelectorStrategy("aria_label_attribute", ATTRIBUTE, "aria-label"),
        ),
        _labelled(
            "calendar_next",
            None,
            SelectorStrategy("single_guillemet", CSS, 'button:has-text("›")'),
            SelectorStrategy("greater_than", CSS, 'button:has-text(">")'),
            SelectorStrategy("aria_next_pt", CSS, "button[aria-label*='Próximo']"),
            SelectorStrategy("aria_next_en", CSS, "button[aria-label*='Next']"),
        ),
        _labelled(
            "calendar_previous",
            None,
            SelectorStrategy("single_guillemet", CSS, 'button:has-text("‹")'),
            SelectorStrategy("less_than", CSS, 'button:has-text("<")'),
            SelectorStrategy("aria_previous_pt", CSS, "button[aria-label*='Anterior']"),
            SelectorStrategy("aria_previous_en", CSS, "button[aria-label*='Previous']"),
        ),
        _labelled(
            "calendar_day",
            None,
            SelectorStrategy("day_button", ROLE, "button"),
            SelectorStrategy("day_gridcell", ROLE, "gridcell"),
            SelectorStrategy("day_text", TEXT_EXACT),
        ),
        _labelled(
            "apply_button",
            profile.apply_label,
            SelectorStrategy("apply_role", ROLE, "button"),
            SelectorStrategy("apply_has_text", CSS, 'button:has-text("{label}")'),
            SelectorStrategy("exact_label", TEXT_EXACT),
        ),
        _labelled(
            "export_menu_trigger",
            profile.export_menu_label,
            SelectorStrategy("menu_role", ROLE, "button"),
            SelectorStrategy("menu_aria_label", ATTRIBUTE, "aria-label"),
            SelectorStrategy("first_icon_button", CSS, "button:has(svg)"),
            SelectorStrategy(
                "fixed_point",
                COORDINATES,
                EXPORT_MENU_FALLBACK_POINT,
                unreliable=True,
            ),
        ),
        _labelled(
            "download_report_item",
            profile.download_item_label,
            SelectorStrategy("exact_label", TEXT_EXACT),
            SelectorStrategy("exact_label_folded", TEXT_FOLDED),
            SelectorStrategy("menuitem_role", ROLE, "menuitem"),
            SelectorStrategy("menuitem_contains_label", CONTAINS_TEXT, "[role='menuitem']"),
        ),
        _labelled(
            "confirm_download_button",
            profile.confirm_download_label,
            SelectorStrategy("confirm_has_text", CSS, 'button:has-text("{label}")'),
            SelectorStrategy("confirm_role", ROLE, "button"),
        ),
    ]
    return {target.name: target for target in targets}


DEFAULT_TARGETS = build_targets(DEFAULT_PROFILE)
