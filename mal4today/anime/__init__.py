from .parser import MALAnimeParser

__all__ = [
    "MALAnimeParser",
]
