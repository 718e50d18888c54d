"""FastAPI dependencies.

The resolver and services are built once per application in
``create_app`` and stored on ``app.state``; these helpers hand them to the
route functions.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from depot.config import Settings
from depot.services import DirectoryLister, MutationService, TransferService
from depot.validators.path import PathResolver


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_resolver(request: Request) -> PathResolver:
    return request.app.state.resolver


def get_lister(request: Request) -> DirectoryLister:
    return request.app.state.lister


def get_transfer_service(request: Request) -> TransferService:
    return request.app.state.transfer


def get_mutation_service(request: Request) -> MutationService:
    return request.app.state.mutation


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
ResolverDep = Annotated[PathResolver, Depends(get_resolver)]
ListerDep = Annotated[DirectoryLister, Depends(get_lister)]
TransferServiceDep = Annotated[TransferService, Depends(get_transfer_service)]
MutationServiceDep = Annotated[MutationService, Depends(get_mutation_service)]
