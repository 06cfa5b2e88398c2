import io
import random
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import qrcode

import config
import land
import records
from database import Database
from errors import AgriTrustError, DuplicateRecordError, NotFoundError, ValidationError
from schemas import (
    LandCreate, LandList, RecordCreated, RecordList, RecordOut, StatusUpdate, VerifyResult,
)

__version__ = "0.1.0"

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

router = APIRouter()


# ---------- DB ----------
def get_db(request: Request):
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


# ---------- Helpers ----------
def verify_url(cid: str) -> str:
    return f"{config.BASE_URL}/api/records/verify?" + urlencode({"cid": cid})


def _http_error(exc: AgriTrustError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail={"message": exc.message, "details": exc.issues})
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=f"{exc.what} not found")
    if isinstance(exc, DuplicateRecordError):
        return HTTPException(status_code=409, detail=f"{exc.what} already exists")
    return HTTPException(status_code=500, detail="internal server error")


@router.get("/")
def root():
    return {"status": "AgriTrust backend is running", "version": __version__}


@router.get("/health")
@router.get("/api/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.warning("database health check failed: %s", e)
        database = "error"
    return {"status": "healthy", "version": __version__, "database": database}


# ---------- APIs: records ----------
@router.post("/api/records", response_model=RecordCreated, status_code=201)
def create_record(body: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    try:
        return records.create_record(db, body)
    except AgriTrustError as e:
        raise _http_error(e)


@router.get("/api/records", response_model=RecordList)
def list_records(
    land_id: Optional[str] = Query(None, alias="landId"),
    db: Session = Depends(get_db),
):
    return {"records": records.list_records(db, land_id, limit=config.RECORD_LIST_LIMIT)}


# registered before /api/records/{cid} so "verify" is not taken as a cid
@router.get("/api/records/verify", response_model=VerifyResult)
def verify_record(cid: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    try:
        return records.verify_record(db, cid)
    except AgriTrustError as e:
        raise _http_error(e)


@router.get("/api/records/{cid}", response_model=RecordOut)
def get_record(cid: str, db: Session = Depends(get_db)):
    try:
        return records.get_record(db, cid)
    except AgriTrustError as e:
        raise _http_error(e)


@router.post("/api/records/{cid}/status", response_model=RecordOut)
def set_record_status(cid: str, body: StatusUpdate, db: Session = Depends(get_db)):
    try:
        return records.set_status(db, cid, body.status)
    except AgriTrustError as e:
        raise _http_error(e)


@router.get("/api/records/{cid}/qrcode")
def record_qrcode(cid: str, db: Session = Depends(get_db)):
    try:
        records.get_record(db, cid)
    except AgriTrustError as e:
        raise _http_error(e)
    img = qrcode.make(verify_url(cid))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return Response(content=buf.getvalue(), media_type="image/png")


# ---------- APIs: land ----------
@router.get("/api/land", response_model=LandList)
def list_land(
    role: Optional[str] = Query(None),
    owner_id: Optional[str] = Query(None, alias="ownerId", min_length=3),
    db: Session = Depends(get_db),
):
    try:
        return {"land": land.list_parcels(db, role or "consumer", owner_id)}
    except AgriTrustError as e:
        raise _http_error(e)


@router.post("/api/land", status_code=201)
def create_land(body: LandCreate, db: Session = Depends(get_db)):
    try:
        return land.create_parcel(db, body)
    except AgriTrustError as e:
        raise _http_error(e)


# ---------- Seed ----------
def _seed(db: Session, land_id: str) -> list:
    land.create_parcel(db, LandCreate(id=land_id, name="North Field", crop="Wheat", owner_id="farmer-001"))
    cids = []
    for i in range(1, 4):
        created = records.create_record(db, {
            "landId": land_id,
            "cropType": "Wheat",
            "soilMoisture": round(random.uniform(25, 45), 1),
            "temperature": round(random.uniform(12, 28), 1),
            "phLevel": round(random.uniform(6.0, 7.2), 1),
            "humidity": random.randint(55, 90),
            "cid": f"bafy-seed-soil-{i:03d}",
            "producerId": "farmer-001",
        })
        cids.append(created["cid"])
    created = records.create_record(db, {
        "kind": "weather_reading",
        "landId": land_id,
        "temperature": round(random.uniform(12, 28), 1),
        "humidity": random.randint(55, 90),
        "rainfall": round(random.uniform(0, 12), 1),
        "cid": "bafy-seed-weather-001",
        "producerId": "farmer-001",
    })
    cids.append(created["cid"])
    return cids


@router.get("/api/seed")
def seed(db: Session = Depends(get_db)):
    default_id = "LAND-001"
    if any(p["id"] == default_id for p in land.list_parcels(db)):
        return {"status": "exists", "land_id": default_id}
    try:
        cids = _seed(db, default_id)
    except AgriTrustError as e:
        raise _http_error(e)
    return {"status": "seeded", "land_id": default_id, "cids": cids}


# ---------- App ----------
def create_app(database_url: Optional[str] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(database_url or config.DATABASE_URL)
        database.create_all()
        app.state.database = database
        logger.info("Starting AgriTrust v%s", __version__)
        yield
        logger.info("Shutting down AgriTrust")
        database.dispose()

    app = FastAPI(title="AgriTrust", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CLIENT_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()
