# app/routers/visitors.py
"""
Visitor endpoints — registration, approval link, release, security checkout,
listing, stats, spreadsheet export, and the dashboard update stream.

Static paths (/stats, /export, /updates) are declared before /{visitor_id}.
"""

from html import escape
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from fastapi.responses import HTMLResponse, StreamingResponse
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.visitor import Visitor, VisitorStatus
from app.schemas.visitor import VisitorCreated, VisitorOut, VisitorRegistration, VisitorStats
from app.services.broadcaster import UpdateBroadcaster
from app.services.export_service import XLSX_MEDIA_TYPE, build_workbook, export_filename, period_start
from app.services.photo_service import discard_photo, store_photo
from app.services.visitor_service import VisitorLifecycle
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def get_lifecycle(request: Request, db: Session = Depends(get_db)) -> VisitorLifecycle:
    return VisitorLifecycle(db, request.app.state.broadcaster, request.app.state.dispatcher)


@router.post("/visitors", response_model=VisitorCreated, summary="Register a visitor")
def register_visitor(
    full_name: Optional[str] = Form(None),
    contact_number: Optional[str] = Form(None),
    department_visiting: Optional[str] = Form(None),
    person_to_visit: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    lifecycle: VisitorLifecycle = Depends(get_lifecycle),
):
    """
    Multipart form from the front desk. Returns as soon as the record is stored;
    QR badge and approval emails follow in the background.
    """
    registration = VisitorRegistration.parse({
        "full_name": full_name,
        "contact_number": contact_number,
        "department_visiting": department_visiting,
        "person_to_visit": person_to_visit,
    })

    photo_path = None
    if photo is not None and photo.filename:
        data = photo.file.read(settings.MAX_PHOTO_BYTES + 1)
        if data:
            photo_path = store_photo(data, photo.filename, photo.content_type,
                                     settings.UPLOAD_DIR, settings.MAX_PHOTO_BYTES)

    try:
        visitor_id = lifecycle.register(registration, photo_path)
    except Exception:
        discard_photo(photo_path)
        raise
    return VisitorCreated(id=visitor_id)


@router.get("/visitors", response_model=list[VisitorOut], summary="List visitors, newest first")
def list_visitors(status: Optional[VisitorStatus] = None,
                  lifecycle: VisitorLifecycle = Depends(get_lifecycle)):
    return lifecycle.list(status)


@router.get("/visitors/stats", response_model=VisitorStats, summary="Visitor counts")
def visitor_stats(lifecycle: VisitorLifecycle = Depends(get_lifecycle)):
    return lifecycle.stats()


@router.get("/visitors/export", summary="Download visitors as .xlsx")
def export_visitors(period: Optional[str] = None,
                    lifecycle: VisitorLifecycle = Depends(get_lifecycle)):
    """period = day | week (from Sunday) | month; omit for all records."""
    since = period_start(period)
    visitors = lifecycle.list(since=since)
    filename = export_filename(period)
    logger.info(f"[EXPORT] {len(visitors)} visitor(s) → {filename}")
    return Response(
        content=build_workbook(visitors),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def event_stream(request: Request, broadcaster: UpdateBroadcaster, keepalive: float):
    """One `data: update` frame per broadcast until the client goes away."""
    sub = broadcaster.subscribe()
    try:
        while not await request.is_disconnected():
            event = await sub.next_event(timeout=keepalive)
            if event is None:
                yield ": keep-alive\n\n"
            else:
                yield f"data: {event}\n\n"
    finally:
        broadcaster.unsubscribe(sub)


@router.get("/visitors/updates", summary="Server-sent dashboard updates")
async def visitor_updates(request: Request):
    return StreamingResponse(
        event_stream(request, request.app.state.broadcaster, settings.SSE_KEEPALIVE_SECONDS),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/visitors/{visitor_id}", response_model=VisitorOut, summary="One visitor")
def get_visitor(visitor_id: int, lifecycle: VisitorLifecycle = Depends(get_lifecycle)):
    return lifecycle.get(visitor_id)


APPROVAL_PAGE = """<!DOCTYPE html>
<html>
<head>
  <title>Visitor Approved</title>
  <style>
    body {{ font-family: Arial, sans-serif; text-align: center; padding: 20px; }}
    .btn {{ padding: 10px 20px; margin: 10px; border: none; color: white; cursor: pointer; border-radius: 4px; }}
    .release-btn {{ background: #e74c3c; }}
  </style>
</head>
<body>
  <h1 style="color: #2ecc71;">&#10003; Visitor Approved</h1>
  <p>{full_name} is now checked in.</p>
  {release_control}
  <script>
    function releaseVisitor() {{
      fetch("{release_url}", {{ method: "POST" }})
        .then(function (response) {{
          if (response.ok) {{
            alert("Visitor released successfully");
            window.close();
          }} else {{
            alert("Release failed");
          }}
        }});
    }}
  </script>
</body>
</html>
"""


def render_approval_page(visitor: Visitor, release_url: str) -> str:
    if visitor.out_time is None:
        control = '<button class="btn release-btn" onclick="releaseVisitor()">Release Visitor</button>'
    else:
        control = f"<p>Released at {visitor.out_time:%Y-%m-%d %H:%M}.</p>"
    return APPROVAL_PAGE.format(
        full_name=escape(visitor.full_name),
        release_control=control,
        release_url=release_url,
    )


@router.get("/visitors/{visitor_id}/approve", response_class=HTMLResponse,
            summary="Approval link target (from email / QR)")
def approve_visitor(visitor_id: int, lifecycle: VisitorLifecycle = Depends(get_lifecycle)):
    visitor = lifecycle.approve(visitor_id)
    release_url = f"{settings.API_PREFIX}/visitors/{visitor_id}/release"
    return HTMLResponse(render_approval_page(visitor, release_url))


@router.post("/visitors/{visitor_id}/release", summary="Record visitor departure")
def release_visitor(visitor_id: int, lifecycle: VisitorLifecycle = Depends(get_lifecycle)):
    lifecycle.release(visitor_id)
    return Response(status_code=200)


@router.post("/visitors/{visitor_id}/security-checkout", summary="Security confirms checkout")
def security_checkout(visitor_id: int, lifecycle: VisitorLifecycle = Depends(get_lifecycle)):
    lifecycle.confirm_security(visitor_id)
    return Response(status_code=200)
