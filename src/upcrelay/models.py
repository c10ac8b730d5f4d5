"""Pydantic models for upcrelay API responses."""

from pydantic import BaseModel


class LookupItem(BaseModel):
    """A marketplace listing shaped from an eBay ``itemSummary``."""

    id: str | None = None
    title: str | None = None
    brand: str | None = None
    condition: str | None = None
    #: eBay sends the amount as a decimal string, e.g. ``"19.99"``.
    price: str | float | None = None
    currency: str | None = None
    image: str | None = None
    url: str | None = None
    seller: str | None = None


class LookupResponse(BaseModel):
    """Result of a barcode lookup.

    ``total_found`` is only present when listings were found.
    """

    success: bool = True
    found: bool
    code: str
    total_found: int | None = None
    items: list[LookupItem] = []


class ErrorResponse(BaseModel):
    """Error body for rejected or failed lookups."""

    success: bool = False
    found: bool | None = None
    error: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
