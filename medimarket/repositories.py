"""
Repositories
============
Explicit store interfaces injected into the routes, with a PostgreSQL
implementation (psycopg2, schema-qualified tables) and an in-memory one
used for development and tests.

The medication repository performs the join with pharmacies and owner
accounts and returns Candidate objects ready for the search.
"""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional

from psycopg2 import errors

from .models import Account, AccountContact, Candidate, Medication, Pharmacy


class DuplicateEmailError(Exception):
    """Raised when an account is saved with an email already in use."""


class AccountRepository(ABC):
    @abstractmethod
    def get(self, account_id: int) -> Optional[Account]: ...

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[Account]: ...

    @abstractmethod
    def find_all(self) -> List[Account]: ...

    @abstractmethod
    def save(self, account: Account) -> Account: ...


class PharmacyRepository(ABC):
    @abstractmethod
    def get(self, pharmacy_id: int) -> Optional[Pharmacy]: ...

    @abstractmethod
    def find_all(self) -> List[Pharmacy]: ...

    @abstractmethod
    def save(self, pharmacy: Pharmacy) -> Pharmacy: ...


class MedicationRepository(ABC):
    @abstractmethod
    def get(self, medication_id: int) -> Optional[Medication]: ...

    @abstractmethod
    def save(self, medication: Medication) -> Medication: ...

    @abstractmethod
    def delete(self, medication_id: int) -> bool: ...

    @abstractmethod
    def find_candidates(self, name_filter: Optional[str] = None,
                        max_price: Optional[float] = None) -> List[Candidate]:
        """Medications pre-filtered by name/price, joined with pharmacy and owner, in insertion order."""


# ─────────────────────────────────────────────
# PostgreSQL
# ─────────────────────────────────────────────

def _like_pattern(text):
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


def _account_from_row(row):
    return Account(
        id=row['id'],
        email=row['email'],
        password=row['password'],
        role=row['role'],
        telephone=row['telephone'],
        valide=row['valide'],
        pharmacie_id=row['pharmacie_id'],
    )


def _pharmacy_from_row(row):
    return Pharmacy(
        id=row['id'],
        nom=row['nom'],
        adresse=row['adresse'],
        latitude=row['latitude'],
        longitude=row['longitude'],
    )


def _medication_from_row(row):
    return Medication(
        id=row['id'],
        nom=row['nom'],
        prix=float(row['prix']),
        quantite=row['quantite'],
        description=row['description'],
        date_poste=row['date_poste'],
        pharmacien_id=row['pharmacien_id'],
        pharmacie_id=row['pharmacie_id'],
    )


class PostgresAccountRepository(AccountRepository):
    COLUMNS = "id, email, password, role, telephone, valide, pharmacie_id"

    def __init__(self, store):
        self.store = store

    def get(self, account_id):
        t_users = self.store.qualified_table('utilisateurs')
        with self.store.cursor() as cursor:
            cursor.execute(f"SELECT {self.COLUMNS} FROM {t_users} WHERE id = %s", (account_id,))
            row = cursor.fetchone()
        return _account_from_row(row) if row else None

    def find_by_email(self, email):
        t_users = self.store.qualified_table('utilisateurs')
        with self.store.cursor() as cursor:
            cursor.execute(f"SELECT {self.COLUMNS} FROM {t_users} WHERE email = %s", (email,))
            row = cursor.fetchone()
        return _account_from_row(row) if row else None

    def find_all(self):
        t_users = self.store.qualified_table('utilisateurs')
        with self.store.cursor() as cursor:
            cursor.execute(f"SELECT {self.COLUMNS} FROM {t_users} ORDER BY id")
            return [_account_from_row(row) for row in cursor.fetchall()]

    def save(self, account):
        t_users = self.store.qualified_table('utilisateurs')
        params = (account.email, account.password, account.role,
                  account.telephone, account.valide, account.pharmacie_id)
        try:
            with self.store.cursor(commit=True) as cursor:
                if account.id is None:
                    cursor.execute(f"""
                        INSERT INTO {t_users} (email, password, role, telephone, valide, pharmacie_id)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        RETURNING id
                    """, params)
                    account = replace(account, id=cursor.fetchone()['id'])
                else:
                    cursor.execute(f"""
                        UPDATE {t_users}
                        SET email = %s, password = %s, role = %s, telephone = %s,
                            valide = %s, pharmacie_id = %s
                        WHERE id = %s
                    """, params + (account.id,))
        except errors.UniqueViolation as e:
            raise DuplicateEmailError(account.email) from e
        return account


class PostgresPharmacyRepository(PharmacyRepository):
    COLUMNS = "id, nom, adresse, latitude, longitude"

    def __init__(self, store):
        self.store = store

    def get(self, pharmacy_id):
        t_pharmacies = self.store.qualified_table('pharmacies')
        with self.store.cursor() as cursor:
            cursor.execute(f"SELECT {self.COLUMNS} FROM {t_pharmacies} WHERE id = %s", (pharmacy_id,))
            row = cursor.fetchone()
        return _pharmacy_from_row(row) if row else None

    def find_all(self):
        t_pharmacies = self.store.qualified_table('pharmacies')
        with self.store.cursor() as cursor:
            cursor.execute(f"SELECT {self.COLUMNS} FROM {t_pharmacies} ORDER BY id")
            return [_pharmacy_from_row(row) for row in cursor.fetchall()]

    def save(self, pharmacy):
        t_pharmacies = self.store.qualified_table('pharmacies')
        params = (pharmacy.nom, pharmacy.adresse, pharmacy.latitude, pharmacy.longitude)
        with self.store.cursor(commit=True) as cursor:
            if pharmacy.id is None:
                cursor.execute(f"""
                    INSERT INTO {t_pharmacies} (nom, adresse, latitude, longitude)
                    VALUES (%s, %s, %s, %s)
                    RETURNING id
                """, params)
                return replace(pharmacy, id=cursor.fetchone()['id'])
            cursor.execute(f"""
                UPDATE {t_pharmacies}
                SET nom = %s, adresse = %s, latitude = %s, longitude = %s
                WHERE id = %s
            """, params + (pharmacy.id,))
        return pharmacy


class PostgresMedicationRepository(MedicationRepository):
    COLUMNS = "id, nom, prix, quantite, description, date_poste, pharmacien_id, pharmacie_id"

    def __init__(self, store):
        self.store = store

    def get(self, medication_id):
        t_meds = self.store.qualified_table('medicaments')
        with self.store.cursor() as cursor:
            cursor.execute(f"SELECT {self.COLUMNS} FROM {t_meds} WHERE id = %s", (medication_id,))
            row = cursor.fetchone()
        return _medication_from_row(row) if row else None

    def save(self, medication):
        t_meds = self.store.qualified_table('medicaments')
        with self.store.cursor(commit=True) as cursor:
            if medication.id is None:
                cursor.execute(f"""
                    INSERT INTO {t_meds}
                        (nom, prix, quantite, description, date_poste, pharmacien_id, pharmacie_id)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                """, (medication.nom, medication.prix, medication.quantite, medication.description,
                      medication.date_poste, medication.pharmacien_id, medication.pharmacie_id))
                return replace(medication, id=cursor.fetchone()['id'])
            cursor.execute(f"""
                UPDATE {t_meds}
                SET nom = %s, prix = %s, quantite = %s, description = %s, pharmacie_id = %s
                WHERE id = %s
            """, (medication.nom, medication.prix, medication.quantite, medication.description,
                  medication.pharmacie_id, medication.id))
        return medication

    def delete(self, medication_id):
        t_meds = self.store.qualified_table('medicaments')
        with self.store.cursor(commit=True) as cursor:
            cursor.execute(f"DELETE FROM {t_meds} WHERE id = %s", (medication_id,))
            return cursor.rowcount > 0

    def find_candidates(self, name_filter=None, max_price=None):
        t_meds = self.store.qualified_table('medicaments')
        t_users = self.store.qualified_table('utilisateurs')
        t_pharmacies = self.store.qualified_table('pharmacies')

        conditions = []
        params = []
        if name_filter:
            conditions.append("m.nom ILIKE %s")
            params.append(_like_pattern(name_filter))
        if max_price is not None:
            conditions.append("m.prix <= %s")
            params.append(max_price)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        sql_query = f"""
            SELECT
                m.id, m.nom, m.prix, m.quantite, m.description, m.date_poste,
                m.pharmacien_id, m.pharmacie_id,
                u.email AS u_email,
                u.telephone AS u_telephone,
                p.nom AS p_nom,
                p.adresse AS p_adresse,
                p.latitude AS p_latitude,
                p.longitude AS p_longitude
            FROM
                {t_meds} m
                LEFT JOIN {t_users} u ON u.id = m.pharmacien_id
                LEFT JOIN {t_pharmacies} p ON p.id = m.pharmacie_id
            {where}
            ORDER BY m.id;
        """

        with self.store.cursor() as cursor:
            cursor.execute(sql_query, params)
            rows = cursor.fetchall()

        candidates = []
        for row in rows:
            pharmacy = None
            if row['p_nom'] is not None:
                pharmacy = Pharmacy(
                    id=row['pharmacie_id'],
                    nom=row['p_nom'],
                    adresse=row['p_adresse'],
                    latitude=row['p_latitude'],
                    longitude=row['p_longitude'],
                )
            pharmacist = None
            if row['u_email'] is not None:
                pharmacist = AccountContact(
                    id=row['pharmacien_id'],
                    email=row['u_email'],
                    telephone=row['u_telephone'],
                )
            candidates.append(Candidate(_medication_from_row(row), pharmacy, pharmacist))
        return candidates


# ─────────────────────────────────────────────
# In-memory
# ─────────────────────────────────────────────

class MemoryStore:
    """Process-local tables; dicts keep insertion order."""

    def __init__(self):
        self.lock = threading.RLock()
        self.accounts: Dict[int, Account] = {}
        self.pharmacies: Dict[int, Pharmacy] = {}
        self.medications: Dict[int, Medication] = {}
        self._sequences = {'accounts': 0, 'pharmacies': 0, 'medications': 0}

    def next_id(self, table):
        self._sequences[table] += 1
        return self._sequences[table]

    def test_connection(self):
        return {'status': 'connected', 'backend': 'memory'}


class MemoryAccountRepository(AccountRepository):
    def __init__(self, store):
        self.store = store

    def get(self, account_id):
        with self.store.lock:
            account = self.store.accounts.get(account_id)
            return replace(account) if account else None

    def find_by_email(self, email):
        with self.store.lock:
            for account in self.store.accounts.values():
                if account.email == email:
                    return replace(account)
        return None

    def find_all(self):
        with self.store.lock:
            return [replace(a) for a in self.store.accounts.values()]

    def save(self, account):
        with self.store.lock:
            for other in self.store.accounts.values():
                if other.email == account.email and other.id != account.id:
                    raise DuplicateEmailError(account.email)
            if account.id is None:
                account = replace(account, id=self.store.next_id('accounts'))
            self.store.accounts[account.id] = replace(account)
        return account


class MemoryPharmacyRepository(PharmacyRepository):
    def __init__(self, store):
        self.store = store

    def get(self, pharmacy_id):
        with self.store.lock:
            pharmacy = self.store.pharmacies.get(pharmacy_id)
            return replace(pharmacy) if pharmacy else None

    def find_all(self):
        with self.store.lock:
            return [replace(p) for p in self.store.pharmacies.values()]

    def save(self, pharmacy):
        with self.store.lock:
            if pharmacy.id is None:
                pharmacy = replace(pharmacy, id=self.store.next_id('pharmacies'))
            self.store.pharmacies[pharmacy.id] = replace(pharmacy)
        return pharmacy


class MemoryMedicationRepository(MedicationRepository):
    def __init__(self, store):
        self.store = store

    def get(self, medication_id):
        with self.store.lock:
            medication = self.store.medications.get(medication_id)
            return replace(medication) if medication else None

    def save(self, medication):
        with self.store.lock:
            if medication.id is None:
                medication = replace(medication, id=self.store.next_id('medications'))
            self.store.medications[medication.id] = replace(medication)
        return medication

    def delete(self, medication_id):
        with self.store.lock:
            return self.store.medications.pop(medication_id, None) is not None

    def find_candidates(self, name_filter=None, max_price=None):
        needle = name_filter.lower() if name_filter else None
        candidates = []
        with self.store.lock:
            for medication in self.store.medications.values():
                if needle and needle not in medication.nom.lower():
                    continue
                if max_price is not None and medication.prix > max_price:
                    continue
                pharmacy = self.store.pharmacies.get(medication.pharmacie_id)
                owner = self.store.accounts.get(medication.pharmacien_id)
                candidates.append(Candidate(
                    replace(medication),
                    replace(pharmacy) if pharmacy else None,
                    owner.contact() if owner else None,
                ))
        return candidates


def build_repositories(config, pool=None):
    """
    Build the store and repositories selected by config.STORE_BACKEND.

    Returns:
        tuple: (store, accounts, pharmacies, medications)
    """
    backend = (config.STORE_BACKEND or 'postgres').lower()
    if backend == 'memory':
        store = MemoryStore()
        return (store, MemoryAccountRepository(store),
                MemoryPharmacyRepository(store), MemoryMedicationRepository(store))
    if backend == 'postgres':
        from .database import PostgresStore
        store = PostgresStore(config.get_db_config(), schema=config.DB_SCHEMA, pool=pool)
        return (store, PostgresAccountRepository(store),
                PostgresPharmacyRepository(store), PostgresMedicationRepository(store))
    raise ValueError(f"Unknown STORE_BACKEND: {config.STORE_BACKEND!r}")
