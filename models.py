from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text

from database import Base


class LandParcel(Base):
    __tablename__ = "land_parcels"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    current_crop: Mapped[str] = mapped_column(String(100))
    owner_id: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    last_updated: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    last_cid: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class Record(Base):
    __tablename__ = "records"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    kind: Mapped[str] = mapped_column(String(32))
    cid: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    land_id: Mapped[str] = mapped_column(String(64), index=True)
    producer_id: Mapped[str] = mapped_column(String(64))
    # kind-specific hashed fields, JSON text
    payload: Mapped[str] = mapped_column(Text)
    # stored verbatim: it is part of the hashed content
    timestamp: Mapped[str] = mapped_column(String(32))
    hash: Mapped[str] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(16), default="pending")
