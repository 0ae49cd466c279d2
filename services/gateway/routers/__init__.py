from .agents import router as agents_router

__all__ = [
    "agents_router",
]
