"""Sync trigger and status routes."""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from bizsync.api.routes.deps import get_sync_engine

router = APIRouter()


class TokenRequest(BaseModel):
    token: Optional[str] = None  # None or empty clears the token


class CompanyRequest(BaseModel):
    company_id: str


@router.get("/status")
def sync_status(sync_engine=Depends(get_sync_engine)):
    """Change-log counts, session flags and the latest sync run status."""
    return sync_engine.get_sync_status().to_dict()


@router.post("/check-online")
async def check_online(sync_engine=Depends(get_sync_engine)):
    return {"is_online": await sync_engine.check_online_status()}


@router.post("/token")
def set_token(request: TokenRequest, sync_engine=Depends(get_sync_engine)):
    sync_engine.set_auth_token(request.token)
    return {"authenticated": sync_engine.session.auth_token is not None}


@router.post("/push")
async def push(sync_engine=Depends(get_sync_engine)):
    return (await sync_engine.push()).to_dict()


@router.post("/pull")
async def pull(request: CompanyRequest, sync_engine=Depends(get_sync_engine)):
    return (await sync_engine.pull(request.company_id)).to_dict()


@router.post("/full")
async def full_sync(request: CompanyRequest, sync_engine=Depends(get_sync_engine)):
    """Probe, push, pull and clean up. Returns reason="in_progress" if one is running."""
    return (await sync_engine.full_sync(request.company_id)).to_dict()


@router.post("/initial-load")
async def initial_load(request: CompanyRequest, sync_engine=Depends(get_sync_engine)):
    """Replace all local rows of the company with the remote copy. Destructive."""
    return (await sync_engine.initial_load(request.company_id)).to_dict()
