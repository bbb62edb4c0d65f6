"""
Authentication API router - delegates to the auth controller.
"""

from src.api.controller.auth.auth_controller import router as auth_controller_router

router = auth_controller_router

__all__ = ['router']
