from services.generation_client import GenerationClient
from services.manga_orchestrator import MangaOrchestrator, MangaState
from services.study_service import StudyService

__all__ = [
    'GenerationClient',
    'MangaOrchestrator',
    'MangaState',
    'StudyService'
]
