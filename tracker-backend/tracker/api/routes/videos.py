from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from tracker.api.deps import get_current_user_id
from tracker.core.enums import ChangeSource
from tracker.core.errors import VideoNotFound
from tracker.db.repositories import (
    ManualFieldsRepository,
    PlatformMetricsRepository,
    PlatformPostRepository,
    VideoRepository,
)
from tracker.db.session import get_db
from tracker.schemas.video import (
    AuditEntryOut,
    ManualFieldsOut,
    MergeReport,
    PlatformMetricsOut,
    PlatformPostOut,
    SpreadsheetOut,
    VideoCreate,
    VideoDetailOut,
    VideoOut,
    VideoUpdate,
)
from tracker.services.audit import AuditTrail, utcnow
from tracker.services.reconciliation import FieldSet, ReconciliationEngine
from tracker.services.spreadsheet import build_rows, export_csv, filter_rows, missing_summary, tracked_platforms

router = APIRouter(prefix="/api/videos", tags=["videos"])


def _get_owned_video(db: Session, video_id: str, user_id: str):
    v = VideoRepository(db).get_for_user(video_id, user_id)
    if not v:
        raise HTTPException(status_code=404, detail="Video not found")
    return v


def _field_set(body: VideoUpdate) -> FieldSet:
    fs = FieldSet()
    for name in ("title", "description", "published_at", "duration_seconds"):
        value = getattr(body, name)
        if value is not None:
            fs.video[name] = value
    if body.manual:
        fs.manual = body.manual.model_dump(exclude_none=True)
    for m in body.metrics:
        fs.add_metrics(m.platform, m.model_dump(exclude={"platform"}))
    for p in body.posts:
        fs.add_post(p.platform, p.model_dump(exclude={"platform"}))
    return fs


@router.get("", response_model=SpreadsheetOut)
def list_videos(
    filter: str | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Spreadsheet rows with missing-data indicators."""
    platforms = tracked_platforms()
    rows = build_rows(db, user_id, platforms)
    try:
        filtered = filter_rows(rows, filter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SpreadsheetOut(
        videos=filtered,
        platforms=platforms,
        missing_data_summary=missing_summary(rows, platforms),
    )


@router.get("/export.csv")
def export_videos(
    filter: str | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    platforms = tracked_platforms()
    try:
        rows = filter_rows(build_rows(db, user_id, platforms), filter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return Response(
        content=export_csv(rows, platforms),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="videos.csv"'},
    )


@router.post("", response_model=VideoOut, status_code=201)
def create_video(
    body: VideoCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Manually add a video. Publish date and duration go through the merge so they are audited."""
    repo = VideoRepository(db)
    if body.youtube_video_id and repo.get_by_youtube_id(body.youtube_video_id):
        raise HTTPException(status_code=409, detail="A video with this YouTube id already exists")

    v = repo.create(
        user_id=user_id,
        title=body.title.strip(),
        youtube_video_id=body.youtube_video_id,
        source=ChangeSource.MANUAL.value,
        created_at=utcnow(),
    )
    db.flush()

    fs = FieldSet()
    if body.published_at is not None:
        fs.video["published_at"] = body.published_at
    if body.duration_seconds is not None:
        fs.video["duration_seconds"] = body.duration_seconds
    if not fs.is_empty():
        ReconciliationEngine(db).merge(v.id, fs, source=ChangeSource.MANUAL, actor_id=user_id)

    db.commit()
    db.refresh(v)
    return v


@router.get("/{video_id}", response_model=VideoDetailOut)
def get_video(
    video_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    v = _get_owned_video(db, video_id, user_id)
    detail = VideoDetailOut.model_validate(v)
    mf = ManualFieldsRepository(db).get_for_video(video_id)
    detail.manual_fields = ManualFieldsOut.model_validate(mf) if mf else None
    detail.platform_metrics = [
        PlatformMetricsOut.model_validate(m) for m in PlatformMetricsRepository(db).get_for_video(video_id)
    ]
    detail.platform_posts = [
        PlatformPostOut.model_validate(p) for p in PlatformPostRepository(db).get_for_video(video_id)
    ]
    detail.audit = [AuditEntryOut.model_validate(a) for a in AuditTrail(db).for_entity(video_id)]
    return detail


@router.patch("/{video_id}", response_model=MergeReport)
def update_video(
    video_id: str,
    body: VideoUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Manual edit of any field namespace, audited like every other merge."""
    _get_owned_video(db, video_id, user_id)
    try:
        result = ReconciliationEngine(db).merge(
            video_id, _field_set(body), source=ChangeSource.MANUAL, actor_id=user_id
        )
    except VideoNotFound:
        raise HTTPException(status_code=404, detail="Video not found")
    db.commit()
    return MergeReport.from_result(result)


@router.delete("/{video_id}")
def delete_video(
    video_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    _get_owned_video(db, video_id, user_id)
    VideoRepository(db).delete_cascade(video_id)
    db.commit()
    return {"ok": True}


@router.get("/{video_id}/audit", response_model=list[AuditEntryOut])
def get_video_audit(
    video_id: str,
    field: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    _get_owned_video(db, video_id, user_id)
    return AuditTrail(db).for_entity(video_id, limit=limit, field=field)
