"""JSON HTTP API for trades, imports and journal entries."""

from tradelog.api.app import create_app

__all__ = ["create_app"]
