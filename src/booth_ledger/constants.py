"""Enumerations and fixed vocabularies shared across Booth Ledger modules.

The customer-profile enumerations double as input constraints and as the
labels written to the sales export, so their member order and labels are part
of the export contract.
"""

from __future__ import annotations

from enum import Enum


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Title shown when no event is selected.
DEFAULT_BOOTH_NAME = "URETA"


class _LabelledEnum(str, Enum):
    """String enum whose members carry a human-readable export label."""

    def __new__(cls, value: str, label: str) -> "_LabelledEnum":
        member = str.__new__(cls, value)
        member._value_ = value
        member.label = label
        return member

    @classmethod
    def from_label(cls, label: str) -> "_LabelledEnum":
        """Resolve a member from either its stored value or its label."""

        for member in cls:
            if label in (member.value, member.label):
                return member
        raise ValueError(f"Unknown {cls.__name__} label: {label!r}")


class AgeGroup(_LabelledEnum):
    """Customer age brackets, youngest first."""

    UNDER_18 = ("under18", "Under 18")
    TWENTIES = ("twenties", "18-29")
    THIRTIES = ("thirties", "30-39")
    FORTIES = ("forties", "40-49")
    FIFTIES_PLUS = ("fiftiesPlus", "50+")


class Gender(_LabelledEnum):
    """Customer gender as recorded at the booth."""

    MALE = ("male", "Male")
    FEMALE = ("female", "Female")
    OTHER = ("other", "Other")


class MarketingChannel(_LabelledEnum):
    """How the customer learned about the booth."""

    SNS = ("sns", "SNS")
    BLOG = ("blog", "Blog")
    PASSERBY = ("passerby", "Passerby")
    SAMPLE_BOOK = ("sampleBook", "Sample Book")
    REFERRAL = ("referral", "Referral")
    STAFF = ("staff", "Staff")


class SheetName(str, Enum):
    """Enumerate the workbook sheet names backing each persisted blob."""

    PRODUCTS = "Products"
    EVENTS = "Events"
    TRANSACTIONS = "Transactions"
    SALE_ITEMS = "SaleItems"


SHEET_COLUMNS: dict[SheetName, tuple[str, ...]] = {
    SheetName.PRODUCTS: (
        "ProductID",
        "ProductName",
        "Price",
        "ImageRef",
        "InventoryManaged",
        "Stock",
        "IsBundle",
        "ComponentIDs",
    ),
    SheetName.EVENTS: ("EventID", "EventName", "IsSelected"),
    SheetName.TRANSACTIONS: (
        "TransactionID",
        "Timestamp",
        "EventID",
        "AgeGroup",
        "Gender",
        "Channel",
        "Exhibitor",
        "Acquaintance",
        "Cashless",
        "Reserved",
        "Notes",
    ),
    SheetName.SALE_ITEMS: ("SaleItemID", "TransactionID", "ProductID", "Quantity"),
}


EXPORT_HEADER: tuple[str, ...] = (
    "Event",
    "DateTime",
    "ProductName",
    "Quantity",
    "UnitPrice",
    "Amount",
    "AgeGroup",
    "Gender",
    "Channel",
    "Exhibitor",
    "Acquaintance",
    "Cashless",
    "Reserved",
    "Notes",
)

EXPORT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "DEFAULT_BOOTH_NAME",
    "AgeGroup",
    "Gender",
    "MarketingChannel",
    "SheetName",
    "SHEET_COLUMNS",
    "EXPORT_HEADER",
    "EXPORT_DATETIME_FORMAT",
]
