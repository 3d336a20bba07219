from georisk.repositories.reports import DEFAULT_REPORTS_KEY, ReportRepository
from georisk.repositories.users import DEFAULT_USERS_KEY, UserRepository

__all__ = [
    "DEFAULT_REPORTS_KEY",
    "ReportRepository",
    "DEFAULT_USERS_KEY",
    "UserRepository",
]
