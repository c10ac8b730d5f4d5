"""upcrelay: barcode lookup relay for the eBay Browse API."""

__version__ = "0.1.0"
