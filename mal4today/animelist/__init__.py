from .parser import MALAnimeListParser

__all__ = [
    "MALAnimeListParser",
]
