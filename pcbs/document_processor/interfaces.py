"""
Data structures shared by the document processor components.

Extractors produce these records and hand them to the persistence and
reconciliation layers. Python attributes are snake_case; ``to_dict()`` emits
the camelCase field names downstream consumers rely on.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Any
from datetime import datetime


class ItemType(Enum):
    """Row kinds of an order's item table."""
    MAIN_CATEGORY = "maincategory"
    SUBCATEGORY = "subcategory"
    ITEM = "item"


class SectionType(Enum):
    """Logical sections a contract or addendum page can contain."""
    ORIGINAL = "original"
    OPTIONAL_PACKAGE = "optional-package"
    ADDENDUM = "addendum"


# Default user intent per section type. Advisory only: it never blocks
# extraction of an unselected section.
SECTION_DEFAULT_SELECTED: Dict[SectionType, bool] = {
    SectionType.ORIGINAL: True,
    SectionType.OPTIONAL_PACKAGE: False,
    SectionType.ADDENDUM: True,
}


def _money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


@dataclass
class ParsedEmail:
    """Decoded email bodies and headers."""

    text: str = ''
    html: str = ''
    subject: Optional[str] = None
    sender: Optional[str] = None
    date: Optional[datetime] = None


@dataclass
class Location:
    """Customer and job-site fields of a contract."""

    dbx_customer_id: Optional[str] = None
    client_name: str = ''
    email: Optional[str] = None
    phone: Optional[str] = None
    street_address: str = ''
    city: str = ''
    state: str = ''
    zip: str = ''
    order_no: str = ''
    order_grand_total: Optional[Decimal] = None

    @property
    def is_location_parsed(self) -> bool:
        return self.dbx_customer_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dbxCustomerId': self.dbx_customer_id,
            'clientName': self.client_name,
            'email': self.email,
            'phone': self.phone,
            'streetAddress': self.street_address,
            'city': self.city,
            'state': self.state,
            'zip': self.zip,
            'orderNo': self.order_no,
            'orderGrandTotal': _money(self.order_grand_total),
            'isLocationParsed': self.is_location_parsed,
        }


@dataclass
class OrderItem:
    """
    One row of an order's item table.

    ``maincategory`` and ``subcategory`` rows are structural headers without an
    amount; they group the ``item`` rows that follow them until the next header
    of the same or a higher level.
    """

    type: ItemType
    product_service: str
    qty: Optional[Decimal] = None
    rate: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    main_category: Optional[str] = None
    sub_category: Optional[str] = None
    id: Optional[str] = None
    progress_overall_pct: Optional[Decimal] = None
    previously_invoiced_pct: Optional[Decimal] = None
    vendor_name_1: Optional[str] = None
    estimated_vendor_cost: Optional[Decimal] = None
    vendor_billing_to_date: Optional[Decimal] = None
    is_optional: bool = False
    optional_package_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'type': self.type.value,
            'productService': self.product_service,
            'qty': _money(self.qty),
            'rate': _money(self.rate),
            'amount': _money(self.amount),
            'mainCategory': self.main_category,
            'subCategory': self.sub_category,
            'progressOverallPct': _money(self.progress_overall_pct),
            'previouslyInvoicedPct': _money(self.previously_invoiced_pct),
            'vendorName1': self.vendor_name_1,
            'estimatedVendorCost': _money(self.estimated_vendor_cost),
            'vendorBillingToDate': _money(self.vendor_billing_to_date),
        }
        data = {key: value for key, value in data.items() if value is not None}
        if self.is_optional:
            data['isOptional'] = True
            data['optionalPackageNumber'] = self.optional_package_number
        return data


@dataclass
class ContractTable:
    """Location plus ordered item rows extracted from one contract."""

    location: Location
    items: List[OrderItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'location': self.location.to_dict(),
            'items': [item.to_dict() for item in self.items],
        }


@dataclass
class ExtractedLinks:
    """Contract links found in an email. ``addendum_urls`` keeps duplicates."""

    original_contract_url: Optional[str] = None
    addendum_urls: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'originalContractUrl': self.original_contract_url,
            'addendumUrls': list(self.addendum_urls),
        }


@dataclass
class DetectedSection:
    """A candidate section the user may import."""

    type: SectionType
    number: Optional[int] = None
    name: Optional[str] = None
    selected: Optional[bool] = None

    def __post_init__(self):
        if isinstance(self.type, str):
            self.type = SectionType(self.type)
        if self.selected is None:
            self.selected = SECTION_DEFAULT_SELECTED[self.type]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'type': self.type.value}
        if self.number is not None:
            data['number'] = self.number
        if self.name is not None:
            data['name'] = self.name
        data['selected'] = self.selected
        return data


@dataclass
class AddendumData:
    """Items parsed from one addendum page."""

    addendum_number: str
    url: str
    items: List[OrderItem] = field(default_factory=list)
    url_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'addendumNumber': self.addendum_number,
            'urlId': self.url_id,
            'url': self.url,
            'items': [item.to_dict() for item in self.items],
        }
