from __future__ import annotations

from dataclasses import dataclass, field

from ecosort.db import Database
from ecosort.points import PointsService
from ecosort.repository import (
    LedgerRepo,
    NotificationRepo,
    ReportConfigRepo,
    ReportRepo,
    RewardRepo,
    ScheduleRepo,
    UserRepo,
    WasteRepo,
)


@dataclass
class AppState:
    db: Database
    users: UserRepo = field(init=False)
    waste: WasteRepo = field(init=False)
    rewards: RewardRepo = field(init=False)
    ledger: LedgerRepo = field(init=False)
    reports: ReportRepo = field(init=False)
    report_config: ReportConfigRepo = field(init=False)
    schedules: ScheduleRepo = field(init=False)
    notifications: NotificationRepo = field(init=False)
    points: PointsService = field(init=False)

    def __post_init__(self) -> None:
        self.users = UserRepo(self.db)
        self.waste = WasteRepo(self.db)
        self.rewards = RewardRepo(self.db)
        self.ledger = LedgerRepo(self.db)
        self.report_config = ReportConfigRepo(self.db)
        self.reports = ReportRepo(self.db, self.report_config)
        self.schedules = ScheduleRepo(self.db)
        self.notifications = NotificationRepo(self.db)
        self.points = PointsService(self.db)
