from .identity import seed_default_admin

__all__ = ["seed_default_admin"]
