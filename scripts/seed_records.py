#!/usr/bin/env python3
"""
Sample Record Seeder

Generates months of synthetic carbon-project activity (users, projects,
progress updates, credit purchases and alerts) and loads it into the
DuckDB record store, so reports and predictions have data to work on.

Usage:
    python scripts/seed_records.py
    python scripts/seed_records.py --months 12 --projects 60 --seed 42
"""

import argparse
import random
import sys
from datetime import timedelta
from pathlib import Path
from uuid import uuid4

import structlog

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from impact_analytics.models.enums import (
    MilestoneStatus,
    PaymentStatus,
    ProjectStatus,
    ProjectType,
    RecordDomain,
    Severity,
    UserRole,
)
from impact_analytics.models.records import (
    Alert,
    Location,
    Milestone,
    ProgressUpdate,
    Project,
    Transaction,
    User,
)
from impact_analytics.models.timeframe import utc_now
from impact_analytics.storage import get_record_store
from impact_analytics.utils.logging import configure_logging

logger = structlog.get_logger()


class SampleRecordGenerator:
    """
    Builds a consistent set of platform records.

    Every transaction references an existing buyer and project, and every
    progress update an existing project, so breakdowns by owning project
    resolve.
    """

    COUNTRIES = {
        "Kenya": ["Rift Valley", "Coast"],
        "India": ["Gujarat", "Karnataka"],
        "Brazil": ["Para", "Bahia"],
        "Indonesia": ["Kalimantan", "Sumatra"],
    }
    ORGANIZATION_TYPES = ["corporation", "ngo", "government", "individual"]
    CATEGORIES = ["nature_based", "renewable_energy", "waste"]
    TYPE_CATEGORY = {
        ProjectType.REFORESTATION: "nature_based",
        ProjectType.MANGROVE_RESTORATION: "nature_based",
        ProjectType.SOLAR: "renewable_energy",
        ProjectType.WIND: "renewable_energy",
        ProjectType.BIOGAS: "waste",
        ProjectType.WASTE_MANAGEMENT: "waste",
    }

    def __init__(self, months: int, project_count: int, seed: int):
        self.rng = random.Random(seed)
        self.now = utc_now()
        self.start = self.now - timedelta(days=30 * months)
        self.project_count = project_count

    def _moment(self, after=None):
        """Random time between `after` (or the seed window start) and now."""
        lower = after or self.start
        span = max(1, int((self.now - lower).total_seconds()))
        return lower + timedelta(seconds=self.rng.randrange(span))

    def users(self) -> list[User]:
        users = []
        roles = (
            [UserRole.PROJECT_CREATOR] * 20
            + [UserRole.CREDIT_BUYER] * 40
            + [UserRole.VERIFIER] * 4
            + [UserRole.ADMIN] * 2
        )
        for i, role in enumerate(roles):
            created = self._moment()
            last_login = self._moment(created) if self.rng.random() < 0.8 else None
            users.append(
                User(
                    external_id=f"user-{i:03d}",
                    role=role,
                    email=f"user{i:03d}@example.org",
                    country=self.rng.choice(list(self.COUNTRIES)),
                    organization_type=self.rng.choice(self.ORGANIZATION_TYPES),
                    login_count=self.rng.randint(1, 80) if last_login else 0,
                    last_login_at=last_login,
                    created_at=created,
                )
            )
        return users

    def projects(self, creators: list[User]) -> list[Project]:
        projects = []
        statuses = [
            ProjectStatus.ACTIVE,
            ProjectStatus.ACTIVE,
            ProjectStatus.COMPLETED,
            ProjectStatus.UNDER_REVIEW,
            ProjectStatus.APPROVED,
            ProjectStatus.SUBMITTED,
        ]
        for i in range(self.project_count):
            project_type = self.rng.choice(list(ProjectType))
            country = self.rng.choice(list(self.COUNTRIES))
            created = self._moment()
            status = self.rng.choice(statuses)
            estimate = created + timedelta(days=self.rng.randint(60, 540))
            completed_at = self._moment(created) if status == ProjectStatus.COMPLETED else None
            milestones = [
                Milestone(
                    title=f"Phase {n + 1}",
                    planned_date=created + timedelta(days=45 * (n + 1)),
                    status=self.rng.choice(list(MilestoneStatus)),
                )
                for n in range(self.rng.randint(2, 5))
            ]
            projects.append(
                Project(
                    creator_id=self.rng.choice(creators).external_id,
                    title=f"{project_type.value.replace('_', ' ').title()} Project {i + 1}",
                    project_type=project_type.value,
                    status=status,
                    location=Location(
                        country=country, region=self.rng.choice(self.COUNTRIES[country])
                    ),
                    target_carbon_impact=round(self.rng.uniform(500, 20000), 1),
                    funding_required=round(self.rng.uniform(20000, 250000), 2),
                    credits_generated=round(self.rng.uniform(0, 8000), 1),
                    progress_percentage=100.0 if completed_at else self.rng.uniform(0, 95),
                    estimated_completion_date=estimate,
                    completed_at=completed_at,
                    created_at=created,
                    milestones=milestones,
                )
            )
        return projects

    def updates(self, projects: list[Project]) -> list[ProgressUpdate]:
        updates = []
        for project in projects:
            if project.status not in (ProjectStatus.ACTIVE, ProjectStatus.COMPLETED):
                continue
            progress = 0.0
            for _ in range(self.rng.randint(1, 6)):
                reported = self._moment(project.created_at)
                progress = min(100.0, progress + self.rng.uniform(5, 25))
                updates.append(
                    ProgressUpdate(
                        project_id=project.id,
                        reported_by=project.creator_id,
                        description="Field report " * self.rng.randint(1, 20),
                        progress_percentage=progress,
                        photos=[f"photo-{uuid4().hex[:8]}.jpg"] * self.rng.randint(0, 4),
                        reporting_date=reported,
                        submitted_at=reported,
                        carbon_impact_to_date=round(self.rng.uniform(10, 900), 1),
                        trees_planted=float(self.rng.randint(0, 5000)),
                        energy_generated=round(self.rng.uniform(0, 3000), 1),
                        is_verified=self.rng.random() < 0.6,
                        submitted_on_time=self.rng.random() < 0.8,
                        created_at=reported,
                    )
                )
        return updates

    def transactions(self, buyers: list[User], projects: list[Project]) -> list[Transaction]:
        transactions = []
        for _ in range(self.project_count * 4):
            project = self.rng.choice(projects)
            credits = round(self.rng.uniform(10, 500), 1)
            price = round(self.rng.uniform(12, 40), 2)
            total = round(credits * price, 2)
            purchased = self._moment(project.created_at)
            transactions.append(
                Transaction(
                    buyer_id=self.rng.choice(buyers).external_id,
                    project_id=project.id,
                    credit_amount=credits,
                    unit_price=price,
                    total_amount=total,
                    platform_fee=round(total * 0.05, 2),
                    payment_status=PaymentStatus.COMPLETED,
                    category=self.TYPE_CATEGORY[ProjectType(project.project_type)],
                    purchase_date=purchased,
                    created_at=purchased,
                )
            )
        return transactions

    def alerts(self, projects: list[Project]) -> list[Alert]:
        return [
            Alert(
                project_id=project.id,
                alert_type=self.rng.choice(["milestone_overdue", "report_missing", "funding_gap"]),
                severity=self.rng.choice(list(Severity)),
                message=f"Attention needed on {project.title}",
                is_resolved=self.rng.random() < 0.5,
                created_at=self._moment(self.now - timedelta(days=7)),
            )
            for project in self.rng.sample(projects, k=min(8, len(projects)))
        ]


def main():
    parser = argparse.ArgumentParser(description="Seed sample platform records")
    parser.add_argument("--months", type=int, default=12, help="History length in months")
    parser.add_argument("--projects", type=int, default=60, help="Number of projects")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    configure_logging()
    generator = SampleRecordGenerator(args.months, args.projects, args.seed)

    users = generator.users()
    creators = [u for u in users if u.role == UserRole.PROJECT_CREATOR]
    buyers = [u for u in users if u.role == UserRole.CREDIT_BUYER]
    projects = generator.projects(creators)

    batches = {
        RecordDomain.USERS: users,
        RecordDomain.PROJECTS: projects,
        RecordDomain.PROGRESS_UPDATES: generator.updates(projects),
        RecordDomain.TRANSACTIONS: generator.transactions(buyers, projects),
        RecordDomain.ALERTS: generator.alerts(projects),
    }

    record_store = get_record_store()
    for domain, records in batches.items():
        written = record_store.write(domain, records)
        logger.info("records_seeded", domain=domain.value, written=written)
        print(f"  {domain.value:<18} {written}")


if __name__ == "__main__":
    main()
