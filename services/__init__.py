from services.notes_access import NotesAccessService
from services.notes_service import NotesService
from services.insight_generation import InsightGenerator
from services.audio_channel import AudioService

__all__ = [
    'NotesAccessService',
    'NotesService',
    'InsightGenerator',
    'AudioService'
]
