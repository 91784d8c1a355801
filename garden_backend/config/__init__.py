from garden_backend.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
