"""
FastAPI routes for the Drive integration.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import RedirectResponse

from app.core.errors import (
    ArchiveLimitError,
    AuthExchangeError,
    AuthRefreshError,
    CredentialsUnavailableError,
    ProviderTransportError,
)
from app.dependencies import (
    get_app_settings,
    get_archive_builder,
    get_channel_manager,
    get_credential_manager,
)
from app.models.drive import ArchiveResult, NotificationEvent
from app.schemas import (
    ArchiveItemSchema,
    ArchivePublishRequest,
    ArchivePublishResponse,
    ArchiveRequest,
    PublishedFileSchema,
    WatchStartRequest,
)

router = APIRouter()
logger = logging.getLogger(__name__)

_DEFAULT_ARCHIVE_NAME = "arquivos.zip"


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/google/authorize", status_code=HTTPStatus.OK)
async def start_google_oauth_flow(
    request: Request,
    credential_manager: Annotated[Any, Depends(get_credential_manager)],
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Google consent screen.",
    ),
) -> Any:
    """Return (or redirect to) the Google consent URL."""
    authorization_url = credential_manager.build_authorization_url()

    accept_header = request.headers.get("accept", "")
    wants_html = "text/html" in accept_header.lower()
    if redirect or wants_html:
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return {"authorization_url": authorization_url}


@router.get("/auth/google/callback", status_code=HTTPStatus.OK)
async def handle_google_oauth_callback(
    credential_manager: Annotated[Any, Depends(get_credential_manager)],
    code: Optional[str] = Query(default=None, description="Authorization code from Google."),
    error: Optional[str] = Query(default=None, description="Error reported by Google."),
) -> dict:
    """Complete the OAuth exchange and persist the issued tokens."""
    if error or not code:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Authorization was not granted: {error or 'missing code'}.",
        )

    try:
        record = await credential_manager.exchange_code(code)
    except AuthExchangeError as exc:
        logger.warning("Authorization code rejected: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Failed to exchange authorization code.",
        ) from exc
    except ProviderTransportError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_GATEWAY, detail=str(exc)) from exc

    return {"status": "connected", "expires_at": record.expires_at.isoformat()}


@router.get("/auth/google/status", status_code=HTTPStatus.OK)
async def google_auth_status(
    credential_manager: Annotated[Any, Depends(get_credential_manager)],
) -> dict:
    await credential_manager.is_authenticated()
    return credential_manager.status()


@router.post("/drive/watch", status_code=HTTPStatus.CREATED)
async def start_drive_watch(
    channel_manager: Annotated[Any, Depends(get_channel_manager)],
    credential_manager: Annotated[Any, Depends(get_credential_manager)],
    settings: Annotated[Any, Depends(get_app_settings)],
    payload: Optional[WatchStartRequest] = None,
) -> dict:
    """Register the push-notification channel on the watched folder."""
    webhook_url = (payload.webhook_url if payload else None) or settings.drive_watch.webhook_url
    if not webhook_url:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="No webhook URL provided and DRIVE_WEBHOOK_URL is not set.",
        )
    if not await credential_manager.is_authenticated():
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Google account not connected.",
        )

    if not await channel_manager.start(str(webhook_url)):
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail=f"Channel registration failed: {channel_manager.last_error}",
        )
    return channel_manager.status()


@router.delete("/drive/watch", status_code=HTTPStatus.OK)
async def stop_drive_watch(
    channel_manager: Annotated[Any, Depends(get_channel_manager)],
) -> dict:
    await channel_manager.stop()
    return channel_manager.status()


@router.get("/drive/watch", status_code=HTTPStatus.OK)
async def drive_watch_status(
    channel_manager: Annotated[Any, Depends(get_channel_manager)],
) -> dict:
    return channel_manager.status()


@router.post("/drive/notifications", status_code=HTTPStatus.OK)
async def drive_notification_webhook(
    request: Request,
    channel_manager: Annotated[Any, Depends(get_channel_manager)],
) -> Response:
    """Receive Google push notifications; always acknowledged with 200."""
    event = NotificationEvent.from_headers(request.headers)
    channel_manager.handle_notification(event)
    return Response(status_code=HTTPStatus.OK)


@router.post("/archives", status_code=HTTPStatus.OK)
async def download_archive(
    payload: ArchiveRequest,
    builder: Annotated[Any, Depends(get_archive_builder)],
) -> Response:
    """Build a ZIP from files or a folder and return it directly."""
    result = await _build_archive(builder, payload)
    failed_ids = ",".join(item.file_id for item in result.failed)
    headers = {
        "Content-Disposition": f'attachment; filename="{_ascii_filename(result.name)}"',
        "X-Archive-Succeeded": str(len(result.succeeded)),
        "X-Archive-Failed": str(len(result.failed)),
    }
    if failed_ids:
        headers["X-Archive-Failed-Ids"] = failed_ids
    return Response(content=result.content, media_type="application/zip", headers=headers)


@router.post(
    "/archives/publish",
    response_model=ArchivePublishResponse,
    status_code=HTTPStatus.CREATED,
)
async def publish_archive(
    payload: ArchivePublishRequest,
    builder: Annotated[Any, Depends(get_archive_builder)],
) -> ArchivePublishResponse:
    """Build a ZIP, upload it to Drive and share it publicly."""
    result = await _build_archive(builder, payload)
    try:
        published = await builder.publish(
            result.content, result.name, payload.destination_folder_id
        )
    except ProviderTransportError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail=f"Archive was not created: {exc}",
        ) from exc
    except (CredentialsUnavailableError, AuthRefreshError) as exc:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail=str(exc)) from exc

    return ArchivePublishResponse(
        status=published.status,
        archive_name=result.name,
        file=PublishedFileSchema.from_result(published),
        items=[ArchiveItemSchema.from_outcome(item) for item in result.items],
    )


async def _build_archive(builder: Any, payload: ArchiveRequest) -> ArchiveResult:
    try:
        if payload.folder_id:
            return await builder.build_from_folder(payload.folder_id, payload.archive_name)
        return await builder.build_from_file_list(
            payload.file_ids or [], payload.archive_name or _DEFAULT_ARCHIVE_NAME
        )
    except (CredentialsUnavailableError, AuthRefreshError) as exc:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail=str(exc)) from exc
    except ArchiveLimitError as exc:
        raise HTTPException(
            status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE, detail=str(exc)
        ) from exc
    except ProviderTransportError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_GATEWAY, detail=str(exc)) from exc


def _ascii_filename(name: str) -> str:
    cleaned = name.encode("ascii", "ignore").decode("ascii").replace('"', "")
    return cleaned or _DEFAULT_ARCHIVE_NAME


__all__ = ["router"]
