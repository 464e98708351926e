"""SQLAlchemy ORM models.

All models are imported here so that ``Base.metadata`` knows every table
before ``create_all`` or a migration tool inspects it.
"""

from screenscore.models.class_group import ClassApp, ClassGroup  # noqa: F401
from screenscore.models.ledger import DailyEvaluation, ScoreLedger  # noqa: F401
from screenscore.models.student import Student  # noqa: F401
from screenscore.models.usage import UsageReport  # noqa: F401

__all__ = [
    "ClassApp",
    "ClassGroup",
    "DailyEvaluation",
    "ScoreLedger",
    "Student",
    "UsageReport",
]
