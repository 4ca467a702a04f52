"""
Model enums.

Columns store the enum ``value`` as plain text.
"""
from enum import Enum


class CardType(str, Enum):
    """Kind of knowledge a memory card holds."""
    FACT = "fact"
    CONCEPT = "concept"
    PROCEDURE = "procedure"
    CLAIM = "claim"


class DirectionStage(str, Enum):
    """Lifecycle stage of a learning direction."""
    EXPLORE = "explore"
    SHAPE = "shape"
    ATTACK = "attack"
    STABILIZE = "stabilize"


class SkillLevel(str, Enum):
    """Mastery level of a skill point."""
    UNKNOWN = "unknown"
    EMERGING = "emerging"
    WORKING = "working"
    FLUENT = "fluent"


class WorkoutPhase(str, Enum):
    """Workout phases, in scheduling order."""
    QUIZ = "quiz"
    APPLY = "apply"
    REVIEW = "review"


class WorkoutStatus(str, Enum):
    """Workout lifecycle. pending -> completed is the only transition."""
    PENDING = "pending"
    COMPLETED = "completed"


class WorkoutResult(str, Enum):
    """Outcome recorded for a workout item."""
    PASS = "pass"
    FAIL = "fail"
