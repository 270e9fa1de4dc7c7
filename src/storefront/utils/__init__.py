"""Utility helpers for the storefront fulfillment backend."""
