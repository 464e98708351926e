from pydantic import BaseModel


class DashboardSummary(BaseModel):
    class_count: int
    student_count: int
    needs_attention_count: int
    average_points: float | None = None
