from pydantic import BaseModel


class ProgressTotals(BaseModel):
    """Card and direction totals."""
    total_cards: int = 0
    active_directions: int = 0
    due_today: int = 0
    overdue: int = 0
    avg_stability: float = 0.0


class ProgressActivity(BaseModel):
    """Rolling seven-day activity counts."""
    workouts_completed_7d: int = 0
    new_cards_7d: int = 0


class ProgressResponse(BaseModel):
    """Progress overview response schema."""
    totals: ProgressTotals
    activity: ProgressActivity
