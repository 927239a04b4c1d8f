"""Organization settings and the member tax roster.

Settings live in the store as a single ``settings/global`` document; fields
that are missing fall back to the defaults below.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MalformedRecordError
from .logging_setup import get_logger
from .models import Member, OptionalMoney
from .normalizers import parse_record
from .store import RecordSource

SETTINGS_COLLECTION = "settings"
GLOBAL_SETTINGS_ID = "global"

_logger = get_logger("group_ledger.settings")


class GlobalSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    app_name: str = Field(default="Techies Investments App", alias="appName")
    currency_symbol: str = Field(default="MK", alias="currencySymbol")
    contribution_min: OptionalMoney = Field(default=Decimal("1000"), alias="contributionMin")
    contribution_max: OptionalMoney = Field(default=Decimal("100000"), alias="contributionMax")
    penalty_amount: OptionalMoney = Field(default=Decimal("500"), alias="penaltyAmount")
    invoice_company_name: str = Field(default="Techies Investments", alias="invoiceCompanyName")
    invoice_address: str | None = Field(
        default="P.O. Box 123, City, Country", alias="invoiceAddress"
    )
    invoice_contact: str | None = Field(
        default="contact@techiesinvestments.com / +265 123 456 789", alias="invoiceContact"
    )
    company_tax_pin: str | None = Field(default="P123456789M", alias="companyTaxPIN")
    # MM-DD
    financial_year_start: str = Field(default="01-01", alias="financialYearStart")


def load_settings(source: RecordSource) -> GlobalSettings:
    """Read ``settings/global`` merged over the defaults.

    Null fields in the stored document keep their default. An invalid
    document raises :class:`~group_ledger.errors.MalformedRecordError`.
    """

    doc = source.get(SETTINGS_COLLECTION, GLOBAL_SETTINGS_ID)
    if doc is None:
        return GlobalSettings()
    stored = {k: v for k, v in doc.items() if v is not None and k != "id"}
    try:
        return GlobalSettings.model_validate(stored)
    except ValidationError as e:
        raise MalformedRecordError(SETTINGS_COLLECTION, GLOBAL_SETTINGS_ID, str(e)) from e


@dataclass(frozen=True, slots=True)
class MemberTaxEntry:
    member_id: str | None
    name: str
    tpin: str | None


def member_tax_roster(source: RecordSource) -> list[MemberTaxEntry]:
    """Active members with their tax PINs, sorted by name."""

    roster: list[MemberTaxEntry] = []
    for doc in source.fetch("users"):
        try:
            m = parse_record(Member, doc, collection="users")
        except MalformedRecordError as e:
            _logger.warning("settings:skipped_member doc_id=%s reason=%s", e.doc_id, e.reason)
            continue
        if not m.is_active:
            continue
        roster.append(
            MemberTaxEntry(
                member_id=m.member_id,
                name=m.name or m.email or m.member_id or "Unknown member",
                tpin=m.tpin or None,
            )
        )
    roster.sort(key=lambda e: e.name.casefold())
    return roster


__all__ = [
    "GLOBAL_SETTINGS_ID",
    "GlobalSettings",
    "MemberTaxEntry",
    "SETTINGS_COLLECTION",
    "load_settings",
    "member_tax_roster",
]
