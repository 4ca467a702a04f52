"""
Models package - imports all models so they register with SQLModel metadata.
"""
# Import enums first
from knowflow.models.enums import (
    CardType,
    DirectionStage,
    SkillLevel,
    WorkoutPhase,
    WorkoutStatus,
    WorkoutResult,
)

# Import all models
from knowflow.models.direction import Direction
from knowflow.models.skill_point import SkillPoint
from knowflow.models.memory_card import MemoryCard, calculate_priority
from knowflow.models.workout import Workout, WorkoutItem
from knowflow.models.workout_summary import WorkoutSummary

__all__ = [
    'CardType',
    'DirectionStage',
    'SkillLevel',
    'WorkoutPhase',
    'WorkoutStatus',
    'WorkoutResult',
    'Direction',
    'SkillPoint',
    'MemoryCard',
    'calculate_priority',
    'Workout',
    'WorkoutItem',
    'WorkoutSummary',
]
