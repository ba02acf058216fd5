"""Invoices API package."""

from invoicing.api.v1.invoices.routes import router

__all__ = ["router"]
