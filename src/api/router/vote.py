"""
Vote API router - delegates to the vote controller.
"""

from src.api.controller.vote.vote_controller import router as vote_controller_router

router = vote_controller_router

__all__ = ['router']
