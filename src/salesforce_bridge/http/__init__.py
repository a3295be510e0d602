"""HTTP helpers shared by the Salesforce clients."""

from salesforce_bridge.http.client import HttpClient, parse_json

__all__ = ["HttpClient", "parse_json"]
