from .client import HonchoBaseURL, HonchoMemoryService, MemoryService, MemoryServiceError

__all__ = ["HonchoBaseURL", "HonchoMemoryService", "MemoryService", "MemoryServiceError"]
