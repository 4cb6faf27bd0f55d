import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from pymongo.database import Database

from flatmates.db import get_db
from flatmates.exceptions import AuthError, FlatmatesError, StoreError, ValidationError
from flatmates.middleware.auth_middleware import authenticate_token, get_current_user
from flatmates.models.base import serialize_doc
from flatmates.models.requests import SendMessage, SocketMessage, StartConversation
from flatmates.models.user import AuthenticatedUser
from flatmates.repositories.conversations import ConversationRepository, MessageRepository
from flatmates.repositories.properties import PropertyRepository
from flatmates.repositories.users import UserRepository
from flatmates.utils.connections import Connection, conversation_room, manager, user_room
from flatmates.utils.form_data import RequestBody, loads, parse_request_body, request_body
from flatmates.utils.uploads import save_attachment
from flatmates.utils.validation import validate_body

logger = logging.getLogger("uvicorn.error")

router = APIRouter()

MAX_ATTACHMENTS = 5


def _for_viewer(conversation: dict, viewer: AuthenticatedUser) -> dict:
    """Reduce the unread map to the viewer's own count."""
    unread = conversation.get("unreadCount") or {}
    return {**conversation, "unreadCount": unread.get(viewer.id, 0)}


def _joined_conversation(conversations: ConversationRepository, conversation_id: str,
                         user: AuthenticatedUser) -> dict:
    conversation = conversations.get(conversation_id)
    if user.object_id not in conversation.get("participants", []):
        raise AuthError("Not authorized")
    return conversation


def _notify_new_message(users: UserRepository, recipient_id, sender: AuthenticatedUser, conversation_id):
    # The message is already stored at this point
    try:
        users.push_notification(recipient_id, "message", f"New message from {sender.name}", conversation_id)
    except FlatmatesError:
        logger.exception("Error creating notification for %s", recipient_id)


def deliver_message(db: Database, conversation: dict, sender: AuthenticatedUser,
                    content: str, attachments: list) -> dict:
    """Store a message, update the conversation and tell everyone who is listening."""
    messages = MessageRepository(db)
    message = messages.create({
        "conversation": conversation["_id"],
        "sender": sender.object_id,
        "content": content,
        "attachments": attachments,
    })

    recipients = [p for p in conversation["participants"] if p != sender.object_id]
    ConversationRepository(db).record_message(conversation["_id"], message["_id"], recipients)

    message = messages.with_senders([message])[0]
    manager.publish(conversation_room(conversation["_id"]), "new-message", message)

    users = UserRepository(db)
    for recipient_id in recipients:
        manager.publish(user_room(recipient_id), "message-notification",
                        {"conversationId": conversation["_id"], "message": message})
        _notify_new_message(users, recipient_id, sender, conversation["_id"])
    return message


def read_conversation(db: Database, conversation: dict, reader: AuthenticatedUser,
                      exclude: Optional[Connection] = None):
    MessageRepository(db).mark_read_for(conversation["_id"], reader.object_id)
    ConversationRepository(db).reset_unread(conversation["_id"], reader.object_id)
    manager.publish(conversation_room(conversation["_id"]), "messages-read",
                    {"userId": reader.id, "conversationId": conversation["_id"]}, exclude)


@router.get("/conversations")
def list_conversations(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    conversations = ConversationRepository(db)
    docs = conversations.populate(conversations.list_for_user(current_user.object_id))
    return serialize_doc([_for_viewer(c, current_user) for c in docs])


@router.post("/conversations")
def start_conversation(
    current_user: AuthenticatedUser = Depends(get_current_user),
    payload: RequestBody = Depends(request_body),
    db: Database = Depends(get_db),
):
    start = validate_body(StartConversation, payload.fields)

    recipient = UserRepository(db).get(start.recipient, {"name": 1})
    recipient_id = recipient["_id"]
    if recipient_id == current_user.object_id:
        raise ValidationError("Cannot start a conversation with yourself")

    property_id = None
    if start.property:
        property_id = PropertyRepository(db).get(start.property, {"_id": 1})["_id"]

    conversations = ConversationRepository(db)
    existing = conversations.find_between(current_user.object_id, recipient_id, property_id)
    if existing:
        if not existing.get("isActive", True):
            conversations.set_fields(existing["_id"], {"isActive": True})
            existing["isActive"] = True
        return serialize_doc(_for_viewer(conversations.populate([existing])[0], current_user))

    conversation = conversations.create({
        "participants": [current_user.object_id, recipient_id],
        "property": property_id,
        "unreadCount": {str(recipient_id): 0},
    })

    initial_message = (start.initialMessage or "").strip()
    if initial_message:
        deliver_message(db, conversation, current_user, initial_message, [])

    created = conversations.populate([conversations.get(conversation["_id"])])[0]
    return serialize_doc(_for_viewer(created, current_user))


@router.get("/conversations/{conversation_id}")
def get_conversation_messages(
    conversation_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    conversation = _joined_conversation(ConversationRepository(db), conversation_id, current_user)

    found = MessageRepository(db).list_for_conversation(conversation["_id"])
    read_conversation(db, conversation, current_user)
    return serialize_doc(found)


@router.post("/conversations/{conversation_id}")
def send_message(
    conversation_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    payload: RequestBody = Depends(request_body),
    db: Database = Depends(get_db),
):
    body = validate_body(SendMessage, parse_request_body(payload.fields, ["attachments"]))
    conversation = _joined_conversation(ConversationRepository(db), conversation_id, current_user)

    files = payload.file_list("attachments")
    if len(files) > MAX_ATTACHMENTS:
        raise ValidationError([{"msg": f"At most {MAX_ATTACHMENTS} attachments are allowed", "param": "attachments", "location": "file"}])
    if files:
        attachments = [save_attachment(f) for f in files]
    else:
        attachments = [a.model_dump(exclude_none=True) for a in body.attachments]

    message = deliver_message(db, conversation, current_user, body.content, attachments)
    return serialize_doc(message)


@router.delete("/conversations/{conversation_id}")
def archive_conversation(
    conversation_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    conversations = ConversationRepository(db)
    conversation = _joined_conversation(conversations, conversation_id, current_user)
    conversations.set_fields(conversation["_id"], {"isActive": False})
    return {"msg": "Conversation archived"}


# -------- realtime channel --------

def _error_event(exc: FlatmatesError) -> dict:
    if isinstance(exc, StoreError):
        # Already logged where the store call failed
        return {"event": "error", "data": {"message": "Server error"}}
    data = {"message": exc.message}
    if isinstance(exc, ValidationError):
        data["errors"] = exc.errors
    return {"event": "error", "data": data}


def _conversation_id(data) -> str:
    if not isinstance(data, str) or not data:
        raise ValidationError("Conversation is required")
    return data


async def _on_join(connection: Connection, user: AuthenticatedUser, data, db: Database):
    conversation = await run_in_threadpool(
        _joined_conversation, ConversationRepository(db), _conversation_id(data), user
    )
    manager.join(connection, conversation_room(conversation["_id"]))
    await connection.send({"event": "joined-conversation", "data": {"conversationId": str(conversation["_id"])}})


async def _on_leave(connection: Connection, user: AuthenticatedUser, data, db: Database):
    manager.leave(connection, conversation_room(_conversation_id(data)))


async def _on_send(connection: Connection, user: AuthenticatedUser, data, db: Database):
    if not isinstance(data, dict):
        raise ValidationError("Message content is required")
    body = validate_body(SocketMessage, data)

    def send():
        conversation = _joined_conversation(ConversationRepository(db), body.conversationId, user)
        attachments = [a.model_dump(exclude_none=True) for a in body.attachments]
        deliver_message(db, conversation, user, body.content, attachments)

    await run_in_threadpool(send)


def _typing_event(name: str):
    async def handler(connection: Connection, user: AuthenticatedUser, data, db: Database):
        room = conversation_room(_conversation_id(data))
        if room not in connection.rooms:
            raise AuthError("Not authorized")
        manager.publish(room, name, {"userId": user.id, "conversationId": data}, exclude=connection)

    return handler


async def _on_mark_read(connection: Connection, user: AuthenticatedUser, data, db: Database):
    def mark_read():
        conversation = _joined_conversation(ConversationRepository(db), _conversation_id(data), user)
        read_conversation(db, conversation, user, exclude=connection)

    await run_in_threadpool(mark_read)


SOCKET_EVENTS = {
    "join-conversation": _on_join,
    "leave-conversation": _on_leave,
    "send-message": _on_send,
    "typing": _typing_event("user-typing"),
    "stop-typing": _typing_event("user-stop-typing"),
    "mark-read": _on_mark_read,
}


@router.websocket("/ws")
async def messages_socket(websocket: WebSocket, token: Optional[str] = None, db: Database = Depends(get_db)):
    """Realtime channel. Frames are JSON objects of the form ``{"event": ..., "data": ...}``."""
    await websocket.accept()
    try:
        if not token:
            raise AuthError("Token not provided")
        user = await run_in_threadpool(authenticate_token, token, db)
    except AuthError as e:
        await websocket.send_json(_error_event(e))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    connection = await manager.connect(websocket, user.id)
    await connection.send({"event": "connected", "data": {"userId": user.id}})
    try:
        while True:
            text = await websocket.receive_text()
            try:
                frame = loads(text)
            except ValueError:
                frame = None
            if not isinstance(frame, dict) or frame.get("event") not in SOCKET_EVENTS:
                await connection.send(_error_event(ValidationError("Unknown event")))
                continue

            try:
                await SOCKET_EVENTS[frame["event"]](connection, user, frame.get("data"), db)
            except FlatmatesError as e:
                await connection.send(_error_event(e))
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(connection)
