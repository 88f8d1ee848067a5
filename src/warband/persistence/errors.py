class SaveError(Exception):
    """Base error for save slot operations."""


class SaveNotFoundError(SaveError):
    pass


class SaveIntegrityError(SaveError):
    """Signature or envelope version mismatch."""


class SaveDecodeError(SaveError):
    """Save file is unreadable or holds a corrupt run state."""
