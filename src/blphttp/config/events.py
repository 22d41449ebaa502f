"""Canonical change-event names.

A change event is the dotted name of the setting whose backing material
changed at runtime.  Only the revocation list is reloaded today.

This module has **zero** internal dependencies.
"""

from __future__ import annotations

CRL_CHANGED = "https.crl"

CHANGE_EVENTS: frozenset[str] = frozenset({CRL_CHANGED})
