"""Data access layer models implemented with handcrafted queries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from utils.timeutils import db_to_iso


@dataclass(slots=True)
class User:
    id: int
    email: str
    username: str
    password_hash: str
    first_name: str
    last_name: str
    date_of_birth: Optional[str]
    role: str
    subscription_tier: str
    stripe_customer_id: Optional[str]
    created_at: str
    last_login: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "User":
        return cls(**{name: row.get(name) for name in cls.__slots__})

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_public(self, ticket_balance: Optional[int] = None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
            "subscription_tier": self.subscription_tier,
            "is_admin": self.is_admin,
            "created_at": db_to_iso(self.created_at),
            "last_login": db_to_iso(self.last_login),
        }
        if ticket_balance is not None:
            data["ticket_balance"] = ticket_balance
        return data


@dataclass(slots=True)
class LedgerEntry:
    id: int
    user_id: int
    amount: int
    kind: str
    description: str
    external_ref: Optional[str]
    raffle_id: Optional[int]
    created_at: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LedgerEntry":
        return cls(**{name: row.get(name) for name in cls.__slots__})

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "kind": self.kind,
            "description": self.description,
            "raffle_id": self.raffle_id,
            "created_at": db_to_iso(self.created_at),
        }


@dataclass(slots=True)
class Raffle:
    id: int
    title: str
    description: Optional[str]
    category: str
    year: Optional[int]
    grade: Optional[str]
    value: float
    image_url: Optional[str]
    status: str
    draw_date: str
    min_tickets: int
    max_tickets: Optional[int]
    ticket_capacity: Optional[int]
    featured: bool
    total_entries: int
    total_tickets: int
    winner_user_id: Optional[int]
    winner_selected_at: Optional[str]
    created_at: str
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Raffle":
        raffle = cls(**{name: row.get(name) for name in cls.__slots__})
        raffle.featured = bool(raffle.featured)
        return raffle

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "year": self.year,
            "grade": self.grade,
            "value": self.value,
            "image_url": self.image_url,
            "status": self.status,
            "draw_date": db_to_iso(self.draw_date),
            "min_tickets": self.min_tickets,
            "max_tickets": self.max_tickets,
            "ticket_capacity": self.ticket_capacity,
            "featured": self.featured,
            "total_entries": self.total_entries,
            "total_tickets": self.total_tickets,
            "winner_user_id": self.winner_user_id,
            "winner_selected_at": db_to_iso(self.winner_selected_at),
            "created_at": db_to_iso(self.created_at),
            "updated_at": db_to_iso(self.updated_at),
        }


@dataclass(slots=True)
class RaffleEntry:
    id: int
    user_id: int
    raffle_id: int
    ticket_count: int
    ledger_entry_id: int
    entered_at: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RaffleEntry":
        return cls(**{name: row.get(name) for name in cls.__slots__})

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "raffle_id": self.raffle_id,
            "ticket_count": self.ticket_count,
            "entered_at": db_to_iso(self.entered_at),
        }
