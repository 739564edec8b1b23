"""
Token authentication for the ward API.

Kept apart from the login views so Django REST framework can import the
authentication class during settings initialisation without pulling in
the views and models.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token auth under a stable project import path (``Token <key>``)."""

    keyword = 'Token'
