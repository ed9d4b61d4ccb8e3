from .product_service import ProductService
from .reparse import ReparseService
from .fanout import BoundedFanOut
from .cleanup import CleanupQueue

__all__ = ["ProductService", "ReparseService", "BoundedFanOut", "CleanupQueue"]
