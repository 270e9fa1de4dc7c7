"""Storefront payment-confirmation fulfillment backend."""

__version__ = "0.1.0"
