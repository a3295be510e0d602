"""Salesforce Bridge - CRM customer API and streaming event listener."""

__version__ = "0.1.0"
