from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from tracker.api.deps import get_current_user_id, get_oracle
from tracker.core.errors import ImportFileError
from tracker.db.repositories import ImportBatchRepository
from tracker.db.session import get_db
from tracker.schemas.imports import ImportBatchDetailOut, ImportBatchOut, ImportedRowOut
from tracker.services.column_mapping import ImportService, read_rows
from tracker.services.oracle import ExtractionOracle

router = APIRouter(prefix="/api/imports", tags=["imports"])


@router.post("", response_model=ImportBatchOut, status_code=201)
def create_import(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    oracle: ExtractionOracle = Depends(get_oracle),
):
    """
    Import a CSV, XLSX, JSON or TXT export.

    Rows are merged one by one inside the request; the returned batch holds
    the report (rows imported/failed, column mapping, fields applied).
    """
    file_name = file.filename or "upload"
    try:
        rows = read_rows(file_name, file.file.read())
    except ImportFileError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ImportService(db, oracle=oracle).run(user_id, file_name, rows)


@router.get("", response_model=list[ImportBatchOut])
def list_imports(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ImportBatchRepository(db).list_for_user(user_id)


@router.get("/{batch_id}", response_model=ImportBatchDetailOut)
def get_import(
    batch_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    repo = ImportBatchRepository(db)
    batch = repo.get_by_id(batch_id)
    if not batch or batch.user_id != user_id:
        raise HTTPException(status_code=404, detail="Import not found")
    detail = ImportBatchDetailOut.model_validate(batch)
    detail.rows = [ImportedRowOut.model_validate(r) for r in repo.get_rows(batch_id)]
    return detail
