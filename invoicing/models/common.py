from pydantic import AfterValidator, BaseModel, Field
from datetime import datetime
from typing import Annotated
import uuid

def gen_id() -> str:
    return str(uuid.uuid4())

def now() -> datetime:
    return datetime.now()

def local_naive(value: datetime) -> datetime:
    # "2026-10-01T10:00:00Z" → heure locale sans fuseau, comparable à now()
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value

LocalDatetime = Annotated[datetime, AfterValidator(local_naive)]

class Record(BaseModel):
    id: str = Field(default_factory=gen_id)

    class Config:
        extra = "ignore"  # tolère d'anciennes clés dans les JSON
        frozen = True

class TimeStamped(Record):
    created_at: LocalDatetime = Field(default_factory=now)
    updated_at: LocalDatetime = Field(default_factory=now)

    def touched(self, changes: dict) -> "TimeStamped":
        """Copie validée avec `changes` appliqués ; id/created_at intouchables."""
        data = self.model_dump()
        data.update({k: v for k, v in changes.items() if k not in ("id", "created_at")})
        data["updated_at"] = max(now(), self.updated_at)
        return type(self).model_validate(data)
