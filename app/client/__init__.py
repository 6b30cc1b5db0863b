"""
PetSync client layer
API wrapper, state slices and appointment form helpers for front ends
"""

from app.client.api import ApiError, PetSyncClient
from app.client.store import SliceState, Store

__all__ = ["ApiError", "PetSyncClient", "SliceState", "Store"]
