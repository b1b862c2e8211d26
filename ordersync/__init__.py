"""Ordered collection sync: reorderable lists persisted to a document store.

Reusable reorder machinery lives in ``ordersync.logic`` (order model, drag
controller, reducer, committer, reconciler, session). ``create_app`` builds
the FastAPI service that hosts ordered lists and visit plans over HTTP.
"""

from __future__ import annotations

from ordersync.main import create_app

__all__ = ["create_app"]
