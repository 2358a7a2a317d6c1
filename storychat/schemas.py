"""
Pydantic schemas for the storychat API.

Field names follow the JSON contract the web client already speaks, so
most of them are camelCase.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignupRequest(BaseModel):
    email: str = ""
    password: str = ""
    name: str = ""


class SigninRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    access_token: str
    user: dict


class UserResponse(BaseModel):
    user: dict


class UsersResponse(BaseModel):
    users: list[dict]


class ProfileResponse(BaseModel):
    profile: dict


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, max_length=120)
    bio: Optional[str] = Field(default=None, max_length=1024)
    avatar_url: Optional[str] = None
    theme: Optional[Literal["light", "dark"]] = None
    status: Optional[Literal["online", "offline"]] = None


class AvatarResponse(BaseModel):
    avatar_url: str


class StatusRequest(BaseModel):
    status: Literal["online", "offline"]


class SuccessResponse(BaseModel):
    success: bool = True


class GetOrCreateChatRequest(BaseModel):
    otherUserId: str


class ChatResponse(BaseModel):
    chat: dict


class ChatsResponse(BaseModel):
    chats: list[dict]


class SendMessageRequest(BaseModel):
    chatId: str
    text: str = Field(..., max_length=4000)


class MessageResponse(BaseModel):
    message: dict


class MessagesResponse(BaseModel):
    messages: list[dict]


class MessageRef(BaseModel):
    chatId: str
    messageId: str


class DeleteMessageRequest(MessageRef):
    deleteForEveryone: bool = False


class ReactRequest(MessageRef):
    emoji: str = Field(default="", max_length=32)


class StoryResponse(BaseModel):
    story: dict


class StoryGroup(BaseModel):
    user: Optional[dict] = None
    stories: list[dict]


class StoriesResponse(BaseModel):
    stories: list[StoryGroup]


class ViewStoryRequest(BaseModel):
    userId: str
    storyId: str


class ClientConfigResponse(BaseModel):
    message_poll_seconds: float
    story_poll_seconds: float
    story_ttl_hours: int


class HealthResponse(BaseModel):
    status: Literal["ok"]
    kv: str
    storage: str
    auth: str
