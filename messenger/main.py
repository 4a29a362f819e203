from contextlib import asynccontextmanager

from fastapi import FastAPI

from messenger.core.logging import configure_logging
from messenger.database.connection import close_mongo_connection, connect_to_mongo, get_database
from messenger.repositories.message_repository import MessageRepository
from messenger.routers.chat import router as chat_router
from messenger.routers.conversations import router as conversations_router


@asynccontextmanager
async def lifespan(app: FastAPI):

    configure_logging()
    await connect_to_mongo()
    try:
        await MessageRepository(get_database()).ensure_indexes()
        yield
    finally:
        await close_mongo_connection()


app = FastAPI(title="Direct messages with MongoDB", lifespan=lifespan)


app.include_router(chat_router)
app.include_router(conversations_router)


@app.get("/")
async def root():

    db = get_database()
    collections = await db.list_collection_names()
    return {"message": "Connected to MongoDB!", "collections": collections}
