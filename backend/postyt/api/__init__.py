from .routes import api_router, oauth_router

__all__ = ["api_router", "oauth_router"]
