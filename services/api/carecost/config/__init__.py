from carecost.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "settings"]
