"""
User API router - delegates to the user controller.
"""

from src.api.controller.user.user_controller import router as user_controller_router

router = user_controller_router

__all__ = ['router']
