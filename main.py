import os
import sys
import logging
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from clients.openai_client import OpenAIBackend
from routes.course_routes import router as course_router
from services.generation_client import GenerationClient
from services.study_service import StudyService
from utils.exceptions import IntelliLearnError

load_dotenv()

# Configure logging
logger = logging.getLogger(__name__)
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)


def build_study_service() -> StudyService:
    """Default wiring: OpenAI backend, JSON file storage under INTELLILEARN_DATA_DIR"""
    return StudyService(GenerationClient(OpenAIBackend()))


def create_app(study_service: Optional[StudyService] = None) -> FastAPI:
    app = FastAPI(title="IntelliLearn", description="AI study material from chapter sources")
    app.state.study_service = study_service or build_study_service()

    @app.exception_handler(IntelliLearnError)
    async def intellilearn_exception_handler(request: Request, exc: IntelliLearnError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.error_code} {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.error_code,
                "message": exc.message,
                "status_code": exc.status_code,
                "context": exc.context,
            },
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(course_router)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
