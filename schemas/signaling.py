from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional

RELAY_TYPES = ("offer", "answer", "ice-candidate")


class SignalingModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_message(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class JoinRequest(SignalingModel):
    type: Literal["join"] = "join"
    code: str = Field(strict=True)
    peer_id: str = Field(alias="peerId", min_length=1, strict=True)
    nickname: Optional[str] = None
    avatar: Optional[str] = None


class JoinedMessage(SignalingModel):
    type: Literal["joined"] = "joined"
    success: bool
    error: Optional[str] = None
    room_size: int = Field(default=0, alias="roomSize")
    existing_peers: Optional[List[str]] = Field(default=None, alias="existingPeers")
    remaining_seconds: Optional[int] = Field(default=None, alias="remainingSeconds")


class PeerJoinedMessage(SignalingModel):
    type: Literal["peer-joined"] = "peer-joined"
    peer_id: str = Field(alias="peerId")
    nickname: Optional[str] = None
    avatar: Optional[str] = None


class PeerLeftMessage(SignalingModel):
    type: Literal["peer-left"] = "peer-left"
    peer_id: str = Field(alias="peerId")


class SessionExpiredMessage(SignalingModel):
    type: Literal["session-expired"] = "session-expired"
    message: str


class HealthResponse(BaseModel):
    status: str
    active_rooms: int
    locked: bool
    connections: int
