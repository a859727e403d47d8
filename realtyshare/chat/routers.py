import logging
from typing import List

from fastapi import APIRouter, Depends, WebSocket, WebSocketException, status

from realtyshare.core.dependencies import (
    CurrentUser,
    get_services,
    verify_token,
    websocket_session,
    websocket_user,
)
from realtyshare.core.errors import RealtyShareError
from realtyshare.core.session import Session
from realtyshare.core.streaming import stream_until_disconnect
from realtyshare.utils.display_names import get_display_name

from .schemas import (
    ChatMessage,
    ChatRoom,
    SendMessageModel,
    SendMessageResponseModel,
    CreateDirectConversationModel,
    CreateDirectConversationResponseModel,
    GetConversationsResponseModel,
    GetMessagesResponseModel,
)


logger = logging.getLogger(__name__)
router = APIRouter()


async def _conversations(services, rooms: List[ChatRoom], uid: str) -> List[dict]:
    conversations = []
    for room in rooms:
        other_id = room.other_participant(uid)
        if not other_id:
            continue
        other = await services.profiles.find_profile(other_id)
        conversations.append(
            {
                "id": room.id,
                "participants": room.participants,
                "other_participant_id": other_id,
                "other_participant_name": other.display_name if other else "Unknown User",
                "other_participant_pic": other.profile_picture_url if other else None,
                "last_message_at": room.last_message_at,
                "last_message_text": room.last_message_text,
            }
        )
    return conversations


async def _messages_for_viewer(services, messages: List[ChatMessage], viewer_id: str) -> List[dict]:
    names = {}
    rendered = []
    for message in messages:
        if message.sender_id not in names:
            names[message.sender_id] = await get_display_name(services.profiles, message.sender_id)
        rendered.append(
            {
                **message.model_dump(),
                "sender_name": names[message.sender_id],
                "is_current_user": message.sender_id == viewer_id,
            }
        )
    return rendered


@router.post(
    "/conversations/direct",
    response_model=CreateDirectConversationResponseModel,
    status_code=200,
)
async def get_or_create_direct_conversation(
    data: CreateDirectConversationModel,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Get or create the direct (1-on-1) conversation with another user.

    The conversation id is derived from the two user ids, so calling this
    from either side, any number of times, returns the same id.

    **Returns**
    - `conversation_id`
    - `is_new`: Whether the conversation was created by this call

    **Errors**
    - 400: Conversation with yourself
    - 404: Unknown user
    """
    room_id, is_new = await services.rooms.get_or_create_room(user.id, data.receiver_id)
    return {"conversation_id": room_id, "is_new": is_new}


@router.get("/conversations", response_model=GetConversationsResponseModel, status_code=200)
async def get_conversations(
    user: CurrentUser = Depends(verify_token), services=Depends(get_services)
):
    """
    Every conversation the authenticated user takes part in, most recent
    activity first, with the other participant's name and avatar and the
    last message preview. Used for the chat sidebar.
    """
    rooms = await services.rooms.list_rooms(user.id)
    return {"conversations": await _conversations(services, rooms, user.id)}


@router.post("/messages", response_model=SendMessageResponseModel, status_code=201)
async def send_message(
    data: SendMessageModel,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Send a message to an existing conversation. The receiver is the other
    participant of the conversation.

    **Errors**
    - 400: Empty, longer than the limit, or containing a link
    - 403: User is not a member of the conversation
    - 404: Conversation not found
    """
    room = await services.rooms.require_participant(data.conversation_id, user.id)
    receiver_id = room.other_participant(user.id)

    message = await services.messages.send_message(room.id, user.id, receiver_id, data.content)
    return {"message": message}


@router.get(
    "/messages/{conversation_id}",
    response_model=GetMessagesResponseModel,
    status_code=200,
)
async def get_messages(
    conversation_id: str,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Full message history of a conversation, oldest first. Each message
    carries the sender's display name and `is_current_user`.

    **Errors**
    - 403: User is not a member of the conversation
    - 404: Conversation does not exist
    """
    await services.rooms.require_participant(conversation_id, user.id)
    messages = await services.messages.get_messages(conversation_id)
    return {"messages": await _messages_for_viewer(services, messages, user.id)}


@router.websocket("/ws")
async def watch_conversations(websocket: WebSocket, user: CurrentUser = Depends(websocket_user)):
    """Live conversation list for the chat sidebar."""
    services = websocket.app.state.services
    await websocket.accept()

    async def render(rooms):
        return {"conversations": await _conversations(services, rooms, user.id)}

    await stream_until_disconnect(websocket, services.rooms.watch_rooms(user.id).map(render))


@router.websocket("/ws/{conversation_id}")
async def watch_messages(
    websocket: WebSocket,
    conversation_id: str,
    session: Session = Depends(websocket_session),
):
    """
    Live message list of one conversation: the full ordered list is pushed
    on connect and after every new message.

    While connected, this conversation counts as open for the user, so no
    new-message notifications are raised for it.
    """
    services = websocket.app.state.services
    user_id = session.user_id

    try:
        await services.rooms.require_participant(conversation_id, user_id)
    except RealtyShareError as error:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=error.message)

    await websocket.accept()
    session.notifications.set_open_room(conversation_id)

    async def render(messages):
        return {"messages": await _messages_for_viewer(services, messages, user_id)}

    try:
        await stream_until_disconnect(
            websocket, services.messages.watch(conversation_id).map(render)
        )
    finally:
        session.notifications.clear_open_room(conversation_id)
        logger.info(f"chat_view_closed user={user_id} room={conversation_id}")
