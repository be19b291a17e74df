import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings
from database import Store, connect
from errors import ChatError
from messages import MessageStore
from presence import PresenceRegistry
from schemas import Message, Participant, error_details
from sweeper import LivenessSweeper

settings = Settings.from_env()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


class ChatService:
    """The room: one store shared by the registry, the messages and the sweeper."""

    def __init__(self, store: Store, settings: Settings, clock=None):
        kwargs = {"clock": clock} if clock else {}
        self.store = store
        self.messages = MessageStore(store, **kwargs)
        self.registry = PresenceRegistry(store, self.messages, **kwargs)
        self.sweeper = LivenessSweeper(
            self.registry,
            self.messages,
            interval=settings.sweep_interval,
            stale_after=settings.stale_after,
            **kwargs,
        )


def build_service(settings: Settings) -> ChatService:
    return ChatService(connect(settings), settings)


service = build_service(settings)


def get_service() -> ChatService:
    return service


@asynccontextmanager
async def lifespan(app: FastAPI):
    service.sweeper.start()
    yield
    await service.sweeper.stop()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "errors": exc.details},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": "Invalid request", "errors": error_details(exc)},
    )


@app.get("/")
def read_root():
    return {"message": "Chat API ready"}


@app.get("/test")
def test_database(chat: ChatService = Depends(get_service)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_kind": chat.store.kind,
        "sweeper": "running" if chat.sweeper.running else "stopped",
        "collections": [],
    }
    try:
        response["collections"] = chat.store.list_collection_names()
        response["database"] = "✅ Connected & Working"
    except ChatError as e:
        response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    return response


# Participants
@app.post("/participants", status_code=201, response_model=Participant)
def join(payload: dict = Body(...), chat: ChatService = Depends(get_service)):
    return chat.registry.join(payload.get("name"))


@app.get("/participants", response_model=List[Participant])
def list_participants(chat: ChatService = Depends(get_service)):
    return chat.registry.list_active()


@app.post("/status")
def heartbeat(user: str = Header(...), chat: ChatService = Depends(get_service)):
    chat.registry.heartbeat(user)
    return {"status": "ok"}


# Messages
@app.post("/messages", status_code=201)
def send_message(payload: dict = Body(...), user: str = Header(...), chat: ChatService = Depends(get_service)):
    # the sender is checked before the body, so all validation happens in the store
    message_id = chat.messages.send(user, payload.get("to"), payload.get("text"), payload.get("type"))
    return {"id": message_id}


@app.get("/messages", response_model=List[Message])
def list_messages(limit: int = 0, user: str = Header(...), chat: ChatService = Depends(get_service)):
    return chat.messages.list_visible(user, limit)


@app.put("/messages/{message_id}", response_model=Message)
def edit_message(
    message_id: str,
    payload: dict = Body(...),
    user: str = Header(...),
    chat: ChatService = Depends(get_service),
):
    return chat.messages.edit(message_id, user, payload.get("to"), payload.get("text"), payload.get("type"))


@app.delete("/messages/{message_id}")
def delete_message(message_id: str, user: str = Header(...), chat: ChatService = Depends(get_service)):
    chat.messages.delete(message_id, user)
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
