# src/needboard/services/__init__.py
"""Business logic services for the Needboard application."""

from .admission import Verdict, classify
from .board import Board, build_board, get_board
from .interactions import InteractionService, RegionMismatch
from .migration import MigrationCoordinator
from .pipeline import MessagePipeline, SubmissionOutcome
from .review import ReviewService

__all__ = [
    "Board",
    "build_board",
    "classify",
    "get_board",
    "InteractionService",
    "MessagePipeline",
    "MigrationCoordinator",
    "RegionMismatch",
    "ReviewService",
    "SubmissionOutcome",
    "Verdict",
]
