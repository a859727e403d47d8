from pydantic import BaseModel
from typing import Literal
from datetime import datetime, timezone


PresenceState = Literal["online", "away", "offline"]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class PresenceRecord(BaseModel):
    uid: str
    state: PresenceState = "offline"
    timestamp: datetime = EPOCH


class SetPresenceModel(BaseModel):
    state: PresenceState
