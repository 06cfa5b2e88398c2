from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError

SOIL_READING = "soil_reading"
WEATHER_READING = "weather_reading"
VERIFICATION = "verification"

# stored in their own columns, everything else goes to the JSON payload
INDEXED_FIELDS = ("landId", "cid", "producerId")


# ---------- Record kinds ----------
class RecordBase(BaseModel):
    # strict: no coercion of booleans or numeric strings into numbers
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False, strict=True)

    land_id: str = Field(..., alias="landId", min_length=1, max_length=64)
    cid: str = Field(..., min_length=3, max_length=255)
    producer_id: str = Field(..., alias="producerId", min_length=1, max_length=64)

    @classmethod
    def hashed_field_names(cls) -> List[str]:
        return [f.alias or name for name, f in cls.model_fields.items() if name != "kind"]

    def hashed_fields(self) -> Dict[str, Any]:
        # optional fields are kept as explicit None
        return self.model_dump(by_alias=True, exclude={"kind"})


class SoilReading(RecordBase):
    kind: Literal["soil_reading"] = SOIL_READING
    crop_type: str = Field(..., alias="cropType", min_length=1, max_length=100)
    soil_moisture: float = Field(..., alias="soilMoisture", ge=0, le=100)
    temperature: float = Field(..., ge=-100, le=100)
    ph_level: Optional[float] = Field(None, alias="phLevel", ge=0, le=14)
    humidity: Optional[float] = Field(None, ge=0, le=100)


class WeatherReading(RecordBase):
    kind: Literal["weather_reading"] = WEATHER_READING
    temperature: float = Field(..., ge=-100, le=100)
    humidity: float = Field(..., ge=0, le=100)
    rainfall: Optional[float] = Field(None, ge=0)  # mm
    wind_speed: Optional[float] = Field(None, alias="windSpeed", ge=0)  # km/h


class VerificationRecord(RecordBase):
    kind: Literal["verification"] = VERIFICATION
    data_type: Literal["soil_data", "harvest_record", "crop_cycle"] = Field(..., alias="dataType")
    record_id: str = Field(..., alias="recordId", min_length=1, max_length=255)
    transaction_hash: str = Field(..., alias="transactionHash", pattern=r"^[0-9a-f]{64}$")
    block_number: Optional[int] = Field(None, alias="blockNumber", ge=0)
    ipfs_hash: Optional[str] = Field(None, alias="ipfsHash", max_length=255)


RECORD_KINDS = {
    SOIL_READING: SoilReading,
    WEATHER_READING: WeatherReading,
    VERIFICATION: VerificationRecord,
}

RecordFields = Annotated[
    Union[SoilReading, WeatherReading, VerificationRecord],
    Field(discriminator="kind"),
]
_record_adapter = TypeAdapter(RecordFields)


def _issues(exc: PydanticValidationError, kind: str) -> List[Dict[str, str]]:
    issues = []
    for err in exc.errors():
        loc = list(err["loc"])
        # discriminated unions prefix the location with the tag
        if loc and loc[0] == kind:
            loc = loc[1:]
        issues.append({
            "field": ".".join(str(p) for p in loc) or "kind",
            "message": err["msg"],
        })
    return issues


def parse_record(fields: Any) -> RecordBase:
    """Validate a raw field mapping into its record kind.

    Raises errors.ValidationError listing every violated constraint.
    """
    if not isinstance(fields, dict):
        raise ValidationError([{"field": "", "message": "record must be a JSON object"}])
    data = dict(fields)
    data.setdefault("kind", SOIL_READING)
    try:
        return _record_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(_issues(e, str(data["kind"]))) from e


# ---------- API bodies / responses ----------
class StatusUpdate(BaseModel):
    status: Literal["pending", "verified"]


class RecordCreated(BaseModel):
    success: bool = True
    hash: str
    canonical: str
    cid: str
    kind: str
    timestamp: str
    status: str


class RecordOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    kind: str
    hash: str
    cid: str
    land_id: str = Field(..., alias="landId")
    producer_id: str = Field(..., alias="producerId")
    timestamp: str
    status: str
    fields: Dict[str, Any]


class RecordList(BaseModel):
    success: bool = True
    records: List[RecordOut]


class VerifyResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    valid: bool
    state: Literal["verified", "invalid"]
    cid: str
    stored_hash: str = Field(..., alias="storedHash")
    recomputed_hash: str = Field(..., alias="recomputedHash")
    canonical: str


class LandCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    current_crop: str = Field(..., alias="crop", min_length=1, max_length=100)
    owner_id: Optional[str] = Field(None, alias="ownerId", min_length=3, max_length=64)


class LandOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    crop: str
    last_updated: Optional[str] = Field(None, alias="lastUpdated")
    last_cid: Optional[str] = Field(None, alias="lastCid")


class LandList(BaseModel):
    land: List[LandOut]
