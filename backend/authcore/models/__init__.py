from authcore.models.refresh_token import RefreshToken

__all__ = [
    "RefreshToken",
]
