import sys
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from routes.audio_routes import router as audio_router
from routes.notes_routes import notes_service, router as notes_router
from services.audio_channel import AudioService
from utils.exceptions import NotesError

# Configure logging
logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('app.log')
    ]
)

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.audio_service = AudioService()
    logger.info("Audio service started")
    yield
    await notes_service.wait_for_background()
    app.state.audio_service.close()
    logger.info("Audio service stopped")


# FastAPI App
app = FastAPI(title="Session Study Notes", lifespan=lifespan)


@app.exception_handler(NotesError)
async def notes_exception_handler(request: Request, exc: NotesError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.error_code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": {
                "error": exc.error_code,
                "message": exc.message,
                "redirect_to": exc.redirect_to,
                "context": jsonable_encoder(exc.context),
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors())},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notes_router)
app.include_router(audio_router)


@app.get("/")
async def root():
    return {"greeting": "Hello!", "message": "Welcome to Session Study Notes!"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
