from .places import PlacesRepository, SqlPlaceStore
from .preferences import PreferencesRepository
from . import models

__all__ = ["PlacesRepository", "SqlPlaceStore", "PreferencesRepository", "models"]
