"""Sandbox services: listing, transfers and mutations."""

from depot.services.listing import DirectoryLister
from depot.services.mutation import MutationService
from depot.services.transfer import TransferService

__all__ = ["DirectoryLister", "MutationService", "TransferService"]
