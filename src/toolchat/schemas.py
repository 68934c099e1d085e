from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

from .models import ChatTurn, FileAttachment


class ChatTurnIn(BaseModel):
    role: Literal["user", "assistant"]
    content: str

    def to_model(self) -> ChatTurn:
        return ChatTurn(role=self.role, content=self.content)


class FileAttachmentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    size: int = 0
    mime_type: str = Field(default="application/octet-stream", alias="mimeType")
    data: str

    def to_model(self) -> FileAttachment:
        return FileAttachment(name=self.name, size=self.size, mime_type=self.mime_type, data=self.data)


class ChatRequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    enabled_categories: Dict[str, bool] = Field(default_factory=dict, alias="enabledCategories")
    model: str | None = None
    history: List[ChatTurnIn] = Field(default_factory=list)
    files: List[FileAttachmentIn] = Field(default_factory=list)


class CategorySettingsBody(BaseModel):
    enabled: Dict[str, bool] | None = None
