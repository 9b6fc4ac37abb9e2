"""Repositories over the EcoSort SQLite store."""

from ecosort.repository.ledger import LedgerRepo
from ecosort.repository.notifications import NotificationRepo
from ecosort.repository.reports import ReportConfigRepo, ReportRepo
from ecosort.repository.rewards import RewardRepo
from ecosort.repository.schedules import ScheduleRepo
from ecosort.repository.users import UserRepo
from ecosort.repository.waste import WasteRepo

__all__ = [
    "LedgerRepo",
    "NotificationRepo",
    "ReportConfigRepo",
    "ReportRepo",
    "RewardRepo",
    "ScheduleRepo",
    "UserRepo",
    "WasteRepo",
]
