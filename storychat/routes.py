"""
HTTP routes for the storychat API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from storychat import chats, profiles, stories
from storychat.auth import AuthClient, AuthUser
from storychat.config import Settings, get_settings
from storychat.dependencies import (
    get_access_token,
    get_auth_client,
    get_current_user,
    get_kv_client,
    get_storage_client,
)
from storychat.errors import NotFound
from storychat.kv import KvClient
from storychat.schemas import (
    AvatarResponse,
    ChatResponse,
    ChatsResponse,
    ClientConfigResponse,
    DeleteMessageRequest,
    GetOrCreateChatRequest,
    HealthResponse,
    MessageRef,
    MessageResponse,
    MessagesResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    ReactRequest,
    SendMessageRequest,
    SessionResponse,
    SigninRequest,
    SignupRequest,
    StatusRequest,
    StoriesResponse,
    StoryResponse,
    SuccessResponse,
    UserResponse,
    UsersResponse,
    ViewStoryRequest,
)
from storychat.storage import StorageClient, UploadedFile

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_upload(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    if file is None or not file.filename:
        return None
    return UploadedFile(
        filename=file.filename,
        content_type=file.content_type or "application/octet-stream",
        data=await file.read(),
    )


# ---------- auth ----------


@router.post("/signup", response_model=UserResponse)
def signup(
    payload: SignupRequest,
    kv: KvClient = Depends(get_kv_client),
    auth: AuthClient = Depends(get_auth_client),
):
    user = profiles.signup(kv, auth, payload.email, payload.password, payload.name)
    return UserResponse(user=user.as_dict())


@router.post("/signin", response_model=SessionResponse)
def signin(payload: SigninRequest, auth: AuthClient = Depends(get_auth_client)):
    session = auth.sign_in(payload.email, payload.password)
    return SessionResponse(**session.as_dict())


@router.post("/signout", response_model=SuccessResponse)
def signout(
    user: AuthUser = Depends(get_current_user),
    token: str = Depends(get_access_token),
    kv: KvClient = Depends(get_kv_client),
    auth: AuthClient = Depends(get_auth_client),
):
    auth.sign_out(token)
    try:
        profiles.update_status(kv, user.id, "offline")
    except NotFound:
        logger.warning("Signed out user %s has no profile", user.id)
    return SuccessResponse()


# ---------- profile ----------


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    return ProfileResponse(profile=profiles.get_profile(kv, user.id))


@router.post("/profile/update", response_model=ProfileResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    return ProfileResponse(profile=profiles.update_profile(kv, user.id, updates))


@router.post("/upload/avatar", response_model=AvatarResponse)
async def upload_avatar(
    file: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    upload = await _read_upload(file)
    url = profiles.upload_avatar(
        kv, storage, settings.avatars_bucket, user.id, upload
    )
    return AvatarResponse(avatar_url=url)


# ---------- users ----------


@router.get("/users", response_model=UsersResponse)
def list_users(
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    return UsersResponse(users=profiles.list_users(kv, user.id))


@router.post("/users/status", response_model=SuccessResponse)
def update_status(
    payload: StatusRequest,
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    profiles.update_status(kv, user.id, payload.status)
    return SuccessResponse()


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    user_id: str,
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    return UserResponse(user=profiles.get_user(kv, user_id))


# ---------- chats & messages ----------


@router.post("/chats/get-or-create", response_model=ChatResponse)
def get_or_create_chat(
    payload: GetOrCreateChatRequest,
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    chat = chats.get_or_create_chat(kv, user.id, payload.otherUserId)
    return ChatResponse(chat=chat)


@router.get("/chats", response_model=ChatsResponse)
def list_chats(
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    return ChatsResponse(chats=chats.list_chats(kv, user.id))


@router.post("/messages/send", response_model=MessageResponse)
def send_message(
    payload: SendMessageRequest,
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    message = chats.send_message(kv, user.id, payload.chatId, payload.text)
    return MessageResponse(message=message)


@router.post("/messages/seen", response_model=SuccessResponse)
def mark_seen(
    payload: MessageRef,
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    chats.mark_seen(kv, user.id, payload.chatId, payload.messageId)
    return SuccessResponse()


@router.post("/messages/delete", response_model=SuccessResponse)
def delete_message(
    payload: DeleteMessageRequest,
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
    settings: Settings = Depends(get_settings),
):
    chats.delete_message(
        kv,
        user.id,
        payload.chatId,
        payload.messageId,
        payload.deleteForEveryone,
        settings.deleted_message_text,
    )
    return SuccessResponse()


@router.post("/messages/react", response_model=SuccessResponse)
def react_to_message(
    payload: ReactRequest,
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    chats.react(kv, user.id, payload.chatId, payload.messageId, payload.emoji)
    return SuccessResponse()


@router.get("/messages/{chat_id}", response_model=MessagesResponse)
def list_messages(
    chat_id: str,
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    return MessagesResponse(messages=chats.list_messages(kv, user.id, chat_id))


# ---------- stories ----------


@router.post("/stories/create", response_model=StoryResponse)
async def create_story(
    file: Optional[UploadFile] = File(None),
    text: Optional[str] = Form(None),
    story_type: Optional[str] = Form(None, alias="type"),
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    upload = await _read_upload(file)
    story = stories.create_story(
        kv,
        storage,
        settings.stories_bucket,
        user.id,
        text=text,
        story_type=story_type,
        upload=upload,
        ttl_hours=settings.story_ttl_hours,
    )
    return StoryResponse(story=story)


@router.get("/stories", response_model=StoriesResponse)
def list_stories(
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    return StoriesResponse(stories=stories.list_active_stories(kv))


@router.post("/stories/view", response_model=SuccessResponse)
def view_story(
    payload: ViewStoryRequest,
    user: AuthUser = Depends(get_current_user),
    kv: KvClient = Depends(get_kv_client),
):
    stories.view_story(kv, user.id, payload.userId, payload.storyId)
    return SuccessResponse()


# ---------- service ----------


@router.get("/client-config", response_model=ClientConfigResponse)
def client_config(settings: Settings = Depends(get_settings)):
    """Polling cadence the web client should use in place of push delivery."""
    return ClientConfigResponse(
        message_poll_seconds=settings.message_poll_seconds,
        story_poll_seconds=settings.story_poll_seconds,
        story_ttl_hours=settings.story_ttl_hours,
    )


@router.get("/health", response_model=HealthResponse)
def health(
    kv: KvClient = Depends(get_kv_client),
    storage: StorageClient = Depends(get_storage_client),
    auth: AuthClient = Depends(get_auth_client),
):
    return HealthResponse(
        status="ok",
        kv=kv.__class__.__name__,
        storage=storage.__class__.__name__,
        auth=auth.__class__.__name__,
    )
