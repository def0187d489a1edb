from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class Session(BaseModel):
    """Per-user conversation state. All fields are present from construction."""
    user_id: int
    persona: Optional[str] = None
    age_confirmed: bool = False
    history: list[ChatTurn] = Field(default_factory=list)
    outbound_message_ids: list[int] = Field(default_factory=list)  # sent by the bot
    inbound_message_ids: list[int] = Field(default_factory=list)  # sent by the user

    def clear(self) -> None:
        """Reset conversation bookkeeping; persona and age gate survive."""
        self.history = []
        self.outbound_message_ids = []
        self.inbound_message_ids = []


# API Request/Response models

class ChatPostRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = Field(None, description="User message")
    avatar_id: Optional[str] = Field(None, alias="avatarId", description="Selected persona id")
    init_data: Optional[str] = Field(None, alias="initData", description="Telegram launch data")


class ChatPostResponse(BaseModel):
    response: str
    parts: list[str] = Field(default_factory=list)
    outcome: str


class ChatHistoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[ChatTurn]
    avatar_id: Optional[str] = Field(None, alias="avatarId")


class ClearResponse(BaseModel):
    success: bool = True


class PersonaInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    tagline: str
    background_image: str = Field(..., alias="backgroundImage")
