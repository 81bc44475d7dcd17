from .clist_service import ClistService, Contest

__all__ = ["ClistService", "Contest"]
