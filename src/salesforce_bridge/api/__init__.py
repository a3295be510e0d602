"""API package for the Salesforce bridge."""

from salesforce_bridge.api.app import app, create_app
from salesforce_bridge.api.routes import router

__all__ = ["app", "create_app", "router"]
