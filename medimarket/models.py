"""
Domain Models
=============
Plain dataclasses shared by the repositories, the search and the routes.
JSON projections keep the French field names exposed by the API.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


ROLE_CONSUMER = 'utilisateur'
ROLE_PHARMACIST = 'pharmacien'
ROLE_ADMIN = 'admin'
ROLES = (ROLE_CONSUMER, ROLE_PHARMACIST, ROLE_ADMIN)


@dataclass
class Account:
    email: str
    password: str
    role: str
    telephone: Optional[str] = None
    valide: Optional[bool] = None
    pharmacie_id: Optional[int] = None
    id: Optional[int] = None

    def __post_init__(self):
        # Consumers are active at once, pharmacists and admins wait for an admin.
        if self.valide is None:
            self.valide = self.role == ROLE_CONSUMER

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role,
            'valide': self.valide,
            'telephone': self.telephone,
        }

    def contact(self) -> 'AccountContact':
        return AccountContact(id=self.id, email=self.email, telephone=self.telephone)


@dataclass(frozen=True)
class AccountContact:
    """Contact projection of the pharmacist owning a medication."""
    id: int
    email: str
    telephone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'email': self.email, 'telephone': self.telephone}


@dataclass
class Pharmacy:
    nom: str
    adresse: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    id: Optional[int] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'nom': self.nom,
            'adresse': self.adresse,
            'latitude': self.latitude,
            'longitude': self.longitude,
        }


@dataclass
class Medication:
    nom: str
    prix: float
    quantite: int
    pharmacien_id: int
    description: Optional[str] = None
    pharmacie_id: Optional[int] = None
    date_poste: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'nom': self.nom,
            'prix': self.prix,
            'quantite': self.quantite,
            'description': self.description,
            'datePoste': self.date_poste.isoformat() if self.date_poste else None,
            'pharmacienId': self.pharmacien_id,
            'pharmacieId': self.pharmacie_id,
        }


@dataclass(frozen=True)
class Candidate:
    """A medication joined with its pharmacy and owner projections."""
    medication: Medication
    pharmacy: Optional[Pharmacy] = None
    pharmacist: Optional[AccountContact] = None


@dataclass(frozen=True)
class SearchQuery:
    name_filter: Optional[str] = None
    max_price: Optional[float] = None
    origin_latitude: Optional[float] = None
    origin_longitude: Optional[float] = None

    @property
    def has_origin(self) -> bool:
        return self.origin_latitude is not None and self.origin_longitude is not None


@dataclass(frozen=True)
class RankedResult:
    candidate: Candidate
    distance_km: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        c = self.candidate
        data = c.medication.to_dict()
        data['pharmacien'] = c.pharmacist.to_dict() if c.pharmacist else None
        data['pharmacie'] = c.pharmacy.to_dict() if c.pharmacy else None
        if self.distance_km is not None:
            data['distance'] = self.distance_km
        return data
