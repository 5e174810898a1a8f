"""
HTTP routes for the blockboard API.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from blockboard.auth import AuthenticatedUser
from blockboard.config import get_settings
from blockboard.db import (
    AccessExistsError,
    AccessRecord,
    BlockRecord,
    DashboardRecord,
    DbClient,
)
from blockboard.dependencies import get_db_client, get_github_client
from blockboard.github import GitHubApi, UpstreamError
from blockboard.pipeline import (
    NOT_FOUND,
    UNAUTHORIZED,
    ResponseCacheStage,
    check_dashboard_ownership,
    fetch_access,
    fetch_block,
    fetch_dashboard,
    get_current_user,
    get_current_user_from_state,
    get_response_cache_stage,
)
from blockboard.schemas import (
    UNTITLED,
    AccessResponse,
    BlockCreate,
    BlockResponse,
    DashboardCreate,
    DashboardResponse,
    DashboardUpdate,
    DashboardWithBlocksResponse,
    HealthResponse,
)

logger = logging.getLogger(__name__)

GITHUB = "github"
PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]

dashboard_router = APIRouter(
    tags=["dashboards"], dependencies=[Depends(get_current_user)]
)
public_router = APIRouter(tags=["public"])
access_router = APIRouter(tags=["accesses"])
oauth_router = APIRouter(
    prefix="/auth/github",
    tags=["auth"],
    dependencies=[Depends(get_current_user_from_state)],
)
github_router = APIRouter(prefix="/github", tags=["github"])


@dashboard_router.get("/dashboards", response_model=list[DashboardResponse])
def list_dashboards(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return [DashboardResponse(**d.as_dict()) for d in db.list_dashboards(user.sub)]


@dashboard_router.post("/dashboards", response_model=DashboardResponse)
def create_dashboard(
    payload: Optional[DashboardCreate] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    name = payload.name if payload and payload.name is not None else UNTITLED
    dashboard = db.create_dashboard(name, user.sub)
    logger.info("Dashboard %s created by %s", dashboard.id, user.sub)
    return DashboardResponse(**dashboard.as_dict())


@dashboard_router.put("/dashboards/{id}", response_model=DashboardResponse)
def update_dashboard(
    payload: Optional[DashboardUpdate] = None,
    dashboard: DashboardRecord = Depends(check_dashboard_ownership),
    db: DbClient = Depends(get_db_client),
):
    name = (payload.name if payload else None) or UNTITLED
    updated = db.update_dashboard(dashboard.id, name)
    if not updated:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return DashboardResponse(**updated.as_dict())


@dashboard_router.post("/dashboards/{id}/blocks", response_model=BlockResponse)
def create_block(
    payload: BlockCreate,
    dashboard: DashboardRecord = Depends(check_dashboard_ownership),
    db: DbClient = Depends(get_db_client),
):
    settings = {
        "repository": {"full_name": payload.settings.repository.full_name}
    }
    block = db.create_block(dashboard.id, payload.type, settings)
    return BlockResponse(**block.as_dict())


# TODO: check that the caller owns the block's dashboard before deleting.
@dashboard_router.delete("/blocks/{id}", status_code=204)
def delete_block(
    block: BlockRecord = Depends(fetch_block),
    db: DbClient = Depends(get_db_client),
):
    db.delete_block(block.id)
    return Response(status_code=204)


@dashboard_router.delete("/dashboards/{id}", status_code=204)
def delete_dashboard(
    dashboard: DashboardRecord = Depends(check_dashboard_ownership),
    db: DbClient = Depends(get_db_client),
):
    db.delete_dashboard(dashboard.id)
    return Response(status_code=204)


@public_router.get("/dashboards/{id}", response_model=DashboardWithBlocksResponse)
def read_public_dashboard(id: str, db: DbClient = Depends(get_db_client)):
    """
    Unauthenticated read of a dashboard and its blocks. Every failure,
    malformed id, missing row or broken query alike, answers 404.
    """
    try:
        dashboard_id = int(id)
    except ValueError:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    try:
        dashboard = fetch_dashboard(dashboard_id, db)
        blocks = db.list_blocks(dashboard.id)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to load dashboard %s", id)
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    return DashboardWithBlocksResponse(
        **dashboard.as_dict(),
        blocks=[BlockResponse(**b.as_dict()) for b in blocks],
    )


@public_router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@access_router.get("/accesses", response_model=list[AccessResponse])
def list_accesses(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return [AccessResponse(**a.as_dict()) for a in db.list_accesses(user.sub)]


@oauth_router.get("")
def github_login(
    state: str = Query(...),
    github: GitHubApi = Depends(get_github_client),
):
    # ``state`` carries the caller's session token back to the callback.
    return RedirectResponse(github.authorize_url(state), status_code=302)


@oauth_router.get("/callback")
def github_callback(
    code: str = Query(...),
    user: AuthenticatedUser = Depends(get_current_user_from_state),
    access: Optional[AccessRecord] = Depends(
        fetch_access(GITHUB, get_current_user_from_state)
    ),
    github: GitHubApi = Depends(get_github_client),
    db: DbClient = Depends(get_db_client),
):
    try:
        token = github.exchange_code(code)
    except UpstreamError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    if not token:
        raise HTTPException(status_code=400, detail="Failed to get access token")

    if access:
        logger.info("GitHub access already stored for %s, keeping it", user.sub)
    else:
        try:
            db.create_access(user.sub, GITHUB, token)
            logger.info("Stored GitHub access for %s", user.sub)
        except AccessExistsError:
            logger.info("GitHub access for %s stored concurrently", user.sub)

    # TODO: redirect to the dashboard "add block" page instead of the root.
    return RedirectResponse(get_settings().web_url, status_code=302)


async def read_json_body(request: Request) -> Any:
    """Parsed JSON body of the request, None when it has no body."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Bad Request")


@github_router.api_route("/{path:path}", methods=PROXY_METHODS)
def github_proxy(
    path: str,
    request: Request,
    access: Optional[AccessRecord] = Depends(fetch_access(GITHUB)),
    cache: ResponseCacheStage = Depends(get_response_cache_stage),
    body: Any = Depends(read_json_body),
    github: GitHubApi = Depends(get_github_client),
):
    """
    Forward any call to api.github.com with the caller's stored token.
    Responses are cached by request body only.
    """
    if access is None:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED)

    key = cache.key_for(body)
    cached = cache.lookup(key)
    if cached is not None:
        return JSONResponse(cached)

    if request.url.query:
        path = f"{path}?{request.url.query}"
    try:
        upstream = github.proxy(request.method, path, access.token, body)
    except UpstreamError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    if upstream.payload is None:
        # No-content answers (204, HEAD) are not cached.
        return Response(status_code=upstream.status_code)

    cache.store(key, upstream.payload)
    return JSONResponse(upstream.payload, status_code=upstream.status_code)
