from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from database.models import Ticket, TicketStatus
from services.store import ServiceCenterStore
from utils.time import utc_now


@dataclass(slots=True)
class DailySnapshot:
    total: int
    new: int
    in_progress: int
    completed: int
    revenue: float


@dataclass(slots=True)
class MonthlyStats:
    given: int
    completed: int
    pending: int
    escalated: int


@dataclass(slots=True)
class DashboardMetrics:
    today: DailySnapshot
    month: MonthlyStats
    technician_performance: list[dict[str, Any]]
    leaderboard: list[dict[str, Any]]
    ratings: list[dict[str, Any]]


def _local_day(moment: datetime | None) -> date | None:
    return moment.astimezone().date() if moment else None


class AnalyticsService:
    """Read-only figures computed from the store on demand; nothing is cached."""

    def __init__(
        self,
        store: ServiceCenterStore,
        clock: Callable[[], datetime] = utc_now,
        leaderboard_size: int = 5,
    ) -> None:
        self.store = store
        self._clock = clock
        self.leaderboard_size = leaderboard_size

    def _tickets_today(self, today: date) -> list[Ticket]:
        return [
            ticket
            for ticket in self.store.tickets
            if _local_day(ticket.created_at) == today or _local_day(ticket.completed_at) == today
        ]

    def daily_snapshot(self) -> DailySnapshot:
        todays = self._tickets_today(self._clock().astimezone().date())
        counts: dict[TicketStatus, int] = defaultdict(int)
        for ticket in todays:
            counts[ticket.status] += 1
        revenue = sum(
            ticket.amount_collected or 0
            for ticket in todays
            if ticket.status is TicketStatus.COMPLETED
        )
        return DailySnapshot(
            total=len(todays),
            new=counts[TicketStatus.NEW],
            in_progress=counts[TicketStatus.IN_PROGRESS],
            completed=counts[TicketStatus.COMPLETED],
            revenue=float(revenue),
        )

    def monthly_stats(self) -> MonthlyStats:
        now = self._clock().astimezone()
        month = [
            ticket
            for ticket in self.store.tickets
            if (created := ticket.created_at.astimezone()).year == now.year and created.month == now.month
        ]
        return MonthlyStats(
            given=len(month),
            completed=len([t for t in month if t.status is TicketStatus.COMPLETED]),
            pending=len([t for t in month if t.status not in {TicketStatus.COMPLETED, TicketStatus.CANCELLED}]),
            escalated=len([t for t in month if t.is_escalated]),
        )

    def technician_performance(self) -> list[dict[str, Any]]:
        todays = self._tickets_today(self._clock().astimezone().date())
        rows = [
            {
                "id": tech.id,
                "name": tech.name,
                "completed_jobs": len(
                    [t for t in todays if t.technician_id == tech.id and t.status is TicketStatus.COMPLETED]
                ),
                "online": self.store.is_online(tech),
            }
            for tech in self.store.technicians
        ]
        return sorted(rows, key=lambda row: row["completed_jobs"], reverse=True)

    def leaderboard(self) -> list[dict[str, Any]]:
        ranked = sorted(self.store.technicians, key=lambda tech: tech.points, reverse=True)
        return [
            {"rank": idx, "id": tech.id, "name": tech.name, "points": tech.points}
            for idx, tech in enumerate(ranked[: self.leaderboard_size], start=1)
        ]

    def ratings(self) -> list[dict[str, Any]]:
        ratings: dict[str, list[int]] = defaultdict(list)
        for item in self.store.feedback:
            ticket = self.store.get_ticket(item.ticket_id)
            if ticket is not None:
                ratings[ticket.technician_id].append(item.rating)
        rows = []
        for tech in self.store.technicians:
            scores = ratings.get(tech.id, [])
            rows.append(
                {
                    "id": tech.id,
                    "name": tech.name,
                    "reviews": len(scores),
                    "average_rating": round(sum(scores) / len(scores), 2) if scores else None,
                }
            )
        return rows

    def build_dashboard(self) -> DashboardMetrics:
        return DashboardMetrics(
            today=self.daily_snapshot(),
            month=self.monthly_stats(),
            technician_performance=self.technician_performance(),
            leaderboard=self.leaderboard(),
            ratings=self.ratings(),
        )
