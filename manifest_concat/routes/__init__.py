from .concat import concat_router

__all__ = ["concat_router"]
