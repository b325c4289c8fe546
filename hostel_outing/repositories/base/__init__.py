from hostel_outing.repositories.base.base_repository import BaseRepository

__all__ = ["BaseRepository"]
