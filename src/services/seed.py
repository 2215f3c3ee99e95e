"""Demo data for local development.

Users are upserted by email. The sample clients, properties, deals, tasks
and activities are only inserted into a database that has no clients yet,
so running the seed twice does not duplicate them.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict

from sqlalchemy.orm import Session

from core.auth import hash_password
from core.logging_config import get_logger
from core.models import (
    Activity,
    ActivityType,
    Client,
    ClientStatus,
    Currency,
    Deal,
    DealStage,
    LeadSource,
    Property,
    PropertyStatus,
    Role,
    Task,
    TaskPriority,
    TaskStatus,
    User,
)
from core.utils import utcnow

LOGGER = get_logger(__name__)

DEMO_USERS = (
    ("Admin User", "admin@recrm.com", "admin123", Role.ADMIN),
    ("Sarah Cohen", "sarah@recrm.com", "agent123", Role.AGENT),
    ("David Levi", "david@recrm.com", "agent123", Role.AGENT),
)


@dataclass
class SeedSummary:
    users: int = 0
    clients: int = 0
    properties: int = 0
    deals: int = 0
    tasks: int = 0
    activities: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "users": self.users,
            "clients": self.clients,
            "properties": self.properties,
            "deals": self.deals,
            "tasks": self.tasks,
            "activities": self.activities,
        }


def _upsert_user(session: Session, name: str, email: str, password: str, role: Role) -> tuple[User, bool]:
    user = session.query(User).filter(User.email == email).one_or_none()
    if user is not None:
        return user, False
    user = User(name=name, email=email, password_hash=hash_password(password), role=role.value)
    session.add(user)
    session.flush()
    return user, True


def seed_demo_data(session: Session) -> SeedSummary:
    """Insert the demo dataset. The caller owns the transaction."""
    summary = SeedSummary()

    users = []
    for name, email, password, role in DEMO_USERS:
        user, created = _upsert_user(session, name, email, password, role)
        users.append(user)
        summary.users += int(created)
    admin, sarah, david = users

    if session.query(Client.id).first() is not None:
        LOGGER.info("Clients already present; skipping sample records")
        return summary

    clients = [
        Client(full_name="Moshe Katz", phone="+972-52-1234567", email="moshe@example.com",
               lead_source=LeadSource.INSTAGRAM.value, status=ClientStatus.ACTIVE.value,
               assigned_to=sarah.id, tags=["VIP", "Buyer"],
               notes="Looking for 3-room apartment in Tel Aviv"),
        Client(full_name="Rachel Shapiro", phone="+972-54-9876543", email="rachel@example.com",
               lead_source=LeadSource.REFERRAL.value, status=ClientStatus.NEW.value,
               assigned_to=david.id, tags=["Investor"], notes="Interested in multiple properties"),
        Client(full_name="Yosef Ben-David", phone="+972-50-5554433",
               lead_source=LeadSource.PORTAL.value, status=ClientStatus.ACTIVE.value,
               assigned_to=sarah.id, tags=["Seller"]),
        Client(full_name="Miriam Goldstein", phone="+972-53-7778899", email="miriam@example.com",
               lead_source=LeadSource.FACEBOOK.value, status=ClientStatus.CONVERTED.value,
               assigned_to=admin.id, tags=["Buyer", "Renter"]),
        Client(full_name="Avraham Peretz", phone="+972-58-1112233",
               lead_source=LeadSource.OTHER.value, status=ClientStatus.NOT_INTERESTED.value,
               assigned_to=david.id, tags=[]),
    ]
    session.add_all(clients)
    session.flush()

    properties = [
        Property(title="3BR Apartment in Tel Aviv", address="Dizengoff St 45, Tel Aviv", price=3_500_000,
                 currency=Currency.ILS.value,
                 description="Beautiful apartment in the heart of Tel Aviv, fully renovated",
                 status=PropertyStatus.ACTIVE.value, rooms=3, size_sqm=85, floor=4,
                 owner_client_id=clients[2].id),
        Property(title="Penthouse in Herzliya", address="Sokolov St 12, Herzliya Pituach", price=8_500_000,
                 currency=Currency.ILS.value,
                 description="Luxurious penthouse with sea view, 4 bedrooms, private pool",
                 status=PropertyStatus.ACTIVE.value, rooms=4, size_sqm=200, floor=15),
        Property(title="Studio Apartment Ramat Gan", address="Begin Rd 102, Ramat Gan", price=1_800_000,
                 currency=Currency.ILS.value, description="Cozy studio near Diamond Exchange",
                 status=PropertyStatus.UNDER_OFFER.value, rooms=1, size_sqm=35, floor=2),
        Property(title="Office Space in Jerusalem", address="Jaffa Rd 200, Jerusalem", price=450_000,
                 currency=Currency.USD.value, description="Modern office space in the center of Jerusalem",
                 status=PropertyStatus.ACTIVE.value, size_sqm=120, floor=3),
        Property(title="5BR Villa in Caesarea", address="HaNamal St 7, Caesarea", price=15_000_000,
                 currency=Currency.ILS.value, description="Stunning villa with private garden and pool",
                 status=PropertyStatus.SOLD.value, rooms=5, size_sqm=350, floor=1),
    ]
    session.add_all(properties)
    session.flush()

    now = utcnow()
    deals = [
        Deal(client_id=clients[0].id, property_id=properties[0].id, stage=DealStage.VIEWING.value,
             value=3_500_000, probability=60, assigned_to=sarah.id, next_action_at=now + timedelta(days=2)),
        Deal(client_id=clients[1].id, property_id=properties[1].id, stage=DealStage.NEGOTIATION.value,
             value=8_200_000, probability=40, assigned_to=david.id, next_action_at=now + timedelta(days=1)),
        Deal(client_id=clients[3].id, property_id=properties[4].id, stage=DealStage.CLOSED.value,
             value=15_000_000, probability=100, assigned_to=admin.id),
        Deal(client_id=clients[2].id, stage=DealStage.NEW_LEAD.value, assigned_to=sarah.id,
             next_action_at=now + timedelta(days=3)),
        Deal(client_id=clients[4].id, property_id=properties[2].id, stage=DealStage.CONTRACT.value,
             value=1_800_000, probability=85, assigned_to=david.id),
    ]
    session.add_all(deals)
    session.flush()

    yesterday = now - timedelta(days=1)
    tomorrow = now + timedelta(days=1)
    next_week = now + timedelta(days=7)
    tasks = [
        Task(title="Call Moshe about property viewing", description="Schedule property viewing for next week",
             due_at=tomorrow, priority=TaskPriority.HIGH.value, status=TaskStatus.TODO.value,
             assigned_to=sarah.id, related_client_id=clients[0].id, related_deal_id=deals[0].id),
        Task(title="Send contract to Rachel", due_at=yesterday, priority=TaskPriority.HIGH.value,
             status=TaskStatus.TODO.value, assigned_to=david.id,
             related_client_id=clients[1].id, related_deal_id=deals[1].id),
        Task(title="Update property photos", description="Upload new photos for Tel Aviv apartment",
             due_at=next_week, priority=TaskPriority.LOW.value, status=TaskStatus.IN_PROGRESS.value,
             assigned_to=sarah.id, related_property_id=properties[0].id),
        Task(title="Follow up with Avraham", due_at=yesterday, priority=TaskPriority.MEDIUM.value,
             status=TaskStatus.TODO.value, assigned_to=david.id, related_client_id=clients[4].id),
        Task(title="Prepare Q1 Report", due_at=next_week, priority=TaskPriority.MEDIUM.value,
             status=TaskStatus.TODO.value, assigned_to=admin.id),
    ]
    session.add_all(tasks)

    activities = [
        Activity(type=ActivityType.DEAL_CREATED.value, content="Deal created for Moshe Katz",
                 user_id=sarah.id, client_id=clients[0].id, deal_id=deals[0].id),
        Activity(type=ActivityType.STAGE_CHANGE.value, content="Deal moved to VIEWING stage",
                 user_id=sarah.id, client_id=clients[0].id, deal_id=deals[0].id),
        Activity(type=ActivityType.NOTE.value, content="Client is very interested, prefers morning showings",
                 user_id=sarah.id, client_id=clients[0].id),
        Activity(type=ActivityType.CALL.value, content="Called client, discussed budget and requirements",
                 user_id=david.id, client_id=clients[1].id, deal_id=deals[1].id),
        Activity(type=ActivityType.MEETING.value, content="Property viewing completed, client is interested",
                 user_id=david.id, client_id=clients[1].id, deal_id=deals[1].id),
    ]
    session.add_all(activities)
    session.flush()

    summary.clients = len(clients)
    summary.properties = len(properties)
    summary.deals = len(deals)
    summary.tasks = len(tasks)
    summary.activities = len(activities)
    LOGGER.info("Seeded demo data: %s", summary.as_dict())
    return summary


__all__ = ["seed_demo_data", "SeedSummary", "DEMO_USERS"]
