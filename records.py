"""
Record creation / verification against the record store.

Every function takes the SQLAlchemy session it should use; nothing here opens
connections of its own.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import DuplicateRecordError, NotFoundError, ValidationError
from integrity import compute_record_hash, format_timestamp, verify_stored_record
from models import LandParcel, Record
from schemas import INDEXED_FIELDS, RECORD_KINDS, parse_record

logger = logging.getLogger(__name__)

STATUSES = ("pending", "verified")


def _stored_fields(row: Record) -> Dict[str, Any]:
    """Rebuild the hashed field map from what is currently in storage."""
    try:
        payload = json.loads(row.payload)
    except (TypeError, ValueError):
        logger.warning("stored payload for cid=%s is not valid JSON", row.cid)
        payload = {}
    if not isinstance(payload, dict):
        logger.warning("stored payload for cid=%s is not an object", row.cid)
        payload = {}

    stored = dict(payload)
    stored.update({"landId": row.land_id, "cid": row.cid, "producerId": row.producer_id})

    model = RECORD_KINDS.get(row.kind)
    if model is None:
        return stored
    # same field set as at creation; missing optionals become explicit None
    return {name: stored.get(name) for name in model.hashed_field_names()}


def _row_to_dict(row: Record) -> Dict[str, Any]:
    return {
        "id": row.id,
        "kind": row.kind,
        "hash": row.hash,
        "cid": row.cid,
        "landId": row.land_id,
        "producerId": row.producer_id,
        "timestamp": row.timestamp,
        "status": row.status,
        "fields": _stored_fields(row),
    }


def _find(db: Session, cid: str) -> Record:
    row = db.scalar(select(Record).where(Record.cid == cid))
    if row is None:
        raise NotFoundError("record", cid)
    return row


def create_record(db: Session, fields: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Validate, hash and persist a new record.

    A ``hash`` supplied by the caller is discarded; the hash is always
    computed here from the validated fields and the creation timestamp.
    """
    if isinstance(fields, dict) and "hash" in fields:
        fields = {k: v for k, v in fields.items() if k != "hash"}
        logger.warning("discarding client-supplied hash for cid=%s", fields.get("cid"))

    reading = parse_record(fields)
    if db.scalar(select(Record.id).where(Record.cid == reading.cid)) is not None:
        raise DuplicateRecordError("record", reading.cid)

    timestamp = format_timestamp(now or datetime.now(timezone.utc))
    hashed = reading.hashed_fields()
    digest, canonical = compute_record_hash(hashed, timestamp)

    payload = {k: v for k, v in hashed.items() if k not in INDEXED_FIELDS}
    row = Record(
        kind=reading.kind,
        cid=reading.cid,
        land_id=reading.land_id,
        producer_id=reading.producer_id,
        payload=json.dumps(payload, sort_keys=True),
        timestamp=timestamp,
        hash=digest,
        status="pending",
    )
    db.add(row)

    parcel = db.get(LandParcel, reading.land_id)
    if parcel is not None:
        parcel.last_cid = reading.cid
        parcel.last_updated = timestamp

    try:
        db.commit()
    except IntegrityError as e:
        # a concurrent insert took the cid after the lookup above
        db.rollback()
        raise DuplicateRecordError("record", reading.cid) from e
    db.refresh(row)
    logger.info("record stored kind=%s cid=%s land=%s hash=%s", row.kind, row.cid, row.land_id, digest)

    return {
        "hash": digest,
        "canonical": canonical,
        "cid": row.cid,
        "kind": row.kind,
        "timestamp": timestamp,
        "status": row.status,
    }


def verify_record(db: Session, cid: str) -> Dict[str, Any]:
    """Recompute a stored record's hash from its stored fields.

    Raises NotFoundError for an unknown cid. A mismatch is a normal result
    with ``valid`` False; the record itself is never modified.
    """
    row = _find(db, cid)
    stored = _stored_fields(row)
    stored["timestamp"] = row.timestamp
    stored["hash"] = row.hash

    result = verify_stored_record(stored)
    result["cid"] = row.cid
    result["state"] = "verified" if result["valid"] else "invalid"
    if not result["valid"]:
        logger.warning("integrity mismatch cid=%s stored=%s recomputed=%s",
                       row.cid, row.hash, result["recomputedHash"])
    return result


def get_record(db: Session, cid: str) -> Dict[str, Any]:
    return _row_to_dict(_find(db, cid))


def list_records(db: Session, land_id: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    stmt = select(Record)
    if land_id:
        stmt = stmt.where(Record.land_id == land_id)
    rows = db.scalars(stmt.order_by(Record.id.desc()).limit(limit)).all()
    return [_row_to_dict(r) for r in rows]


def set_status(db: Session, cid: str, status: str) -> Dict[str, Any]:
    """Change the status label. The label is not hashed."""
    if status not in STATUSES:
        raise ValidationError([{"field": "status", "message": f"unknown status: {status}"}])
    row = _find(db, cid)
    row.status = status
    db.commit()
    db.refresh(row)
    logger.info("record status cid=%s status=%s", row.cid, status)
    return _row_to_dict(row)
