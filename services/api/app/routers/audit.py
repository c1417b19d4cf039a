from __future__ import annotations

from fastapi import APIRouter, Depends
from packages.shared.schemas.events import EventV1
from services.api.app.db.deps import get_db
from services.api.app.db.models import EventLog
from sqlalchemy.orm import Session

router = APIRouter()


@router.get("/v1/sessions/{session_id}/events", response_model=list[EventV1])
def list_events(session_id: str, db: Session = Depends(get_db)) -> list[EventV1]:
    rows = (
        db.query(EventLog)
        .filter(EventLog.session_id == session_id)
        .order_by(EventLog.created_at.asc())
        .limit(500)
        .all()
    )

    return [
        EventV1(
            id=row.id,
            session_id=row.session_id,
            entity_type=row.entity_type,
            entity_id=row.entity_id,
            event_type=row.event_type,
            payload=row.event_payload_json or {},
            created_at=row.created_at.isoformat(),
        )
        for row in rows
    ]
