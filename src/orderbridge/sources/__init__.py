from .models import PlatformOrderDto

__all__ = ["PlatformOrderDto"]
