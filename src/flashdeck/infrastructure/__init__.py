# Infrastructure Package
from .json_repository import JsonFileRepository

__all__ = ["JsonFileRepository"]
