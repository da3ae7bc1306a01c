from .books import BooksRepository
from .chapters import ChaptersRepository
from .story_state import StoryStateRepository
from . import models

__all__ = ["BooksRepository", "ChaptersRepository", "StoryStateRepository", "models"]
