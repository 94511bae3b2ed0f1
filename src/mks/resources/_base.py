"""Base resource class."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mks._http import HttpClient


class SyncResource:
    """Base class for Morpheus API resources."""

    def __init__(self, http: HttpClient) -> None:
        self._http = http
