from .errors import SaveDecodeError, SaveError, SaveIntegrityError, SaveNotFoundError
from .save_manager import AUTOSAVE_SLOT, SaveManager

__all__ = [
    "AUTOSAVE_SLOT",
    "SaveManager",
    "SaveError",
    "SaveNotFoundError",
    "SaveIntegrityError",
    "SaveDecodeError",
]
