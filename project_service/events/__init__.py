from .rabbit import RabbitBus, rk

__all__ = ["RabbitBus", "rk"]
