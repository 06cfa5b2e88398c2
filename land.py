import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import DuplicateRecordError, ValidationError
from models import LandParcel
from schemas import LandCreate

logger = logging.getLogger(__name__)

ROLES = ("farmer", "consumer")


def _parcel_to_dict(p: LandParcel) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "crop": p.current_crop,
        "lastUpdated": p.last_updated,
        "lastCid": p.last_cid,
    }


def create_parcel(db: Session, body: LandCreate) -> Dict[str, Any]:
    if db.get(LandParcel, body.id) is not None:
        raise DuplicateRecordError("land parcel", body.id)
    parcel = LandParcel(
        id=body.id,
        name=body.name,
        current_crop=body.current_crop,
        owner_id=body.owner_id,
    )
    db.add(parcel)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateRecordError("land parcel", body.id) from e
    db.refresh(parcel)
    logger.info("land parcel registered id=%s owner=%s", parcel.id, parcel.owner_id)
    return _parcel_to_dict(parcel)


def list_parcels(db: Session, role: str = "consumer", owner_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Farmers see their own parcels, consumers see every parcel."""
    if role not in ROLES:
        raise ValidationError([{"field": "role", "message": f"unknown role: {role}"}],
                              message="invalid query parameters")
    stmt = select(LandParcel)
    if role == "farmer":
        if not owner_id:
            raise ValidationError([{"field": "ownerId", "message": "ownerId is required for farmer role"}],
                                  message="invalid query parameters")
        stmt = stmt.where(LandParcel.owner_id == owner_id)
    rows = db.scalars(stmt.order_by(LandParcel.name.asc())).all()
    return [_parcel_to_dict(p) for p in rows]
