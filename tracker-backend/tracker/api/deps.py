from fastapi import Header, HTTPException

from tracker.services.oracle import ExtractionOracle


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, set by the auth layer in front of this service."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id.strip()


def get_oracle() -> ExtractionOracle:
    return ExtractionOracle()
