"""
API Routes - Marketplace Endpoints
==================================
Accounts, medications, pharmacies and the chatbot proxy.
Repositories come from the application's market context, never from a global.
"""
import logging
import math
from dataclasses import replace

from flask import Blueprint, request, jsonify

from . import get_market
from .auth import (
    check_password, current_account_id, hash_password, issue_token, role_required
)
from .cache import cache, clear_market_cache, make_cache_key_candidates, make_cache_key_pharmacies
from .chatbot import ChatbotError
from .models import Account, Medication, Pharmacy, SearchQuery, ROLES, ROLE_ADMIN, ROLE_PHARMACIST
from .repositories import DuplicateEmailError
from .search import search

logger = logging.getLogger(__name__)

api_bp = Blueprint('market_api', __name__)


class InvalidPayload(Exception):
    """Request body failed validation; message is returned to the client."""


# ─── Parsing helpers ───

def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _query_float(name, bound=None):
    """
    Read an optional float query parameter.
    Non-numeric, NaN, infinite or out-of-bound values count as absent.
    """
    value = request.args.get(name, type=float)
    if value is None or not math.isfinite(value):
        return None
    if bound is not None and abs(value) > bound:
        return None
    return value


def _as_number(value, field):
    if isinstance(value, bool):
        raise InvalidPayload(f"'{field}' doit être un nombre.")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidPayload(f"'{field}' doit être un nombre.")
    if not math.isfinite(number):
        raise InvalidPayload(f"'{field}' doit être un nombre.")
    return number


def _as_id(value, field):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise InvalidPayload(f"'{field}' invalide.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidPayload(f"'{field}' invalide.")


def _as_text(value, field):
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f"'{field}' est requis.")
    return value.strip()


def _medication_fields(data, partial=False):
    """
    Validate medication fields from a request body.
    With partial=True only the keys present are checked and returned.
    """
    fields = {}

    if not partial:
        missing = [k for k in ('nom', 'prix', 'quantite') if data.get(k) in (None, '')]
        if missing:
            raise InvalidPayload(f"Champs requis: {', '.join(missing)}.")

    if 'nom' in data:
        fields['nom'] = _as_text(data['nom'], 'nom')

    if 'prix' in data:
        prix = _as_number(data['prix'], 'prix')
        if prix < 0:
            raise InvalidPayload("'prix' doit être positif.")
        fields['prix'] = prix

    if 'quantite' in data:
        quantite = _as_number(data['quantite'], 'quantite')
        if quantite < 0 or quantite != int(quantite):
            raise InvalidPayload("'quantite' doit être un entier positif.")
        fields['quantite'] = int(quantite)

    if 'description' in data:
        description = data['description']
        if description is not None and not isinstance(description, str):
            raise InvalidPayload("'description' doit être un texte.")
        fields['description'] = description

    if 'pharmacieId' in data:
        pharmacie_id = _as_id(data['pharmacieId'], 'pharmacieId')
        if pharmacie_id is not None and get_market().pharmacies.get(pharmacie_id) is None:
            raise InvalidPayload("Pharmacie introuvable.")
        fields['pharmacie_id'] = pharmacie_id

    return fields


def _coordinate(data, field, bound):
    value = data.get(field)
    if value is None or value == '':
        return None
    number = _as_number(value, field)
    if abs(number) > bound:
        raise InvalidPayload(f"'{field}' doit être entre -{bound} et {bound}.")
    return number


def _load_candidates(name_filter, max_price):
    key = make_cache_key_candidates(name_filter, max_price)
    candidates = cache.get(key)
    if candidates is None:
        candidates = get_market().medications.find_candidates(name_filter=name_filter, max_price=max_price)
        cache.set(key, candidates)
    return candidates


# ─── Health ───

@api_bp.route('/health', methods=['GET'])
def health_check():
    """Check API and store health."""
    return jsonify({
        'api': 'ok',
        'database': get_market().store.test_connection()
    })


# ─── Accounts ───

@api_bp.route('/inscription', methods=['POST'])
def register():
    """
    Register an account.

    Body: email, password, role ('utilisateur' | 'pharmacien' | 'admin'),
    telephone (optional), pharmacieId (optional).
    Consumers are validated immediately, other roles wait for an admin.
    """
    data = _json_body()
    email = data.get('email')
    email = email.strip().lower() if isinstance(email, str) else ''
    password = data.get('password')
    role = data.get('role')

    if not email or not password or not role:
        return jsonify({'message': "Tous les champs requis."}), 400
    if not isinstance(password, str):
        return jsonify({'message': "Mot de passe invalide."}), 400
    if role not in ROLES:
        return jsonify({'message': "Rôle invalide."}), 400

    try:
        pharmacie_id = _as_id(data.get('pharmacieId'), 'pharmacieId')
        if pharmacie_id is not None and get_market().pharmacies.get(pharmacie_id) is None:
            raise InvalidPayload("Pharmacie introuvable.")

        account = Account(
            email=email,
            password=hash_password(password),
            role=role,
            telephone=data.get('telephone'),
            pharmacie_id=pharmacie_id,
        )
        account = get_market().accounts.save(account)
        logger.info("Registered account %s (%s)", account.id, account.role)
        return jsonify({'message': "Inscription réussie, en attente de validation si pharmacien."}), 201

    except InvalidPayload as e:
        return jsonify({'message': str(e)}), 400
    except DuplicateEmailError:
        return jsonify({'message': "Cet email est déjà utilisé."}), 409
    except Exception as e:
        logger.exception("Registration failed")
        return jsonify({'message': "Erreur lors de l'inscription", 'erreur': str(e)}), 500


@api_bp.route('/connexion', methods=['POST'])
def login():
    """Exchange email/password for a bearer token (validated accounts only)."""
    data = _json_body()
    email = data.get('email')
    password = data.get('password')

    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        return jsonify({'message': "Email et mot de passe requis."}), 400

    try:
        account = get_market().accounts.find_by_email(email.strip().lower())

        if account is None or not account.valide:
            return jsonify({'message': "Compte non valide ou en attente de validation."}), 401

        if not check_password(password, account.password):
            return jsonify({'message': "Mot de passe incorrect."}), 401

        return jsonify({'token': issue_token(account)})

    except Exception as e:
        logger.exception("Login failed")
        return jsonify({'message': "Erreur lors de la connexion", 'erreur': str(e)}), 500


@api_bp.route('/valider/<int:account_id>', methods=['PUT'])
@role_required(ROLE_ADMIN)
def validate_account(account_id):
    """Admin: mark an account as validated."""
    try:
        accounts = get_market().accounts
        account = accounts.get(account_id)
        if account is None:
            return jsonify({'message': "Utilisateur introuvable."}), 404

        accounts.save(replace(account, valide=True))
        logger.info("Account %s validated", account_id)
        return jsonify({'message': "Compte validé avec succès !"})

    except Exception as e:
        logger.exception("Validation failed")
        return jsonify({'message': "Erreur lors de la validation", 'erreur': str(e)}), 500


@api_bp.route('/utilisateurs', methods=['GET'])
@role_required(ROLE_ADMIN)
def list_accounts():
    """Admin: list accounts without password hashes."""
    try:
        return jsonify([a.to_dict() for a in get_market().accounts.find_all()])
    except Exception as e:
        logger.exception("Listing accounts failed")
        return jsonify({'message': "Erreur lors de la récupération des utilisateurs", 'erreur': str(e)}), 500


# ─── Medications ───

@api_bp.route('/medicaments', methods=['GET'])
def search_medications():
    """
    Search medications, nearest pharmacy first when a location is given.

    Query Parameters:
        nom (str): Case-insensitive name substring (optional)
        maxprix (float): Price ceiling (optional)
        latitude (float): User's latitude (optional)
        longitude (float): User's longitude (optional)

    Returns:
        JSON array of medications with pharmacist and pharmacy projections,
        plus 'distance' in km when both the user and pharmacy locations are known.
    """
    try:
        query = SearchQuery(
            name_filter=(request.args.get('nom') or '').strip() or None,
            max_price=_query_float('maxprix'),
            origin_latitude=_query_float('latitude', bound=90),
            origin_longitude=_query_float('longitude', bound=180),
        )

        candidates = _load_candidates(query.name_filter, query.max_price)
        results = search(candidates, query)

        return jsonify([r.to_dict() for r in results])

    except Exception as e:
        logger.exception("Medication search failed")
        return jsonify({'message': "Erreur interne", 'erreur': str(e)}), 500


@api_bp.route('/medicaments', methods=['POST'])
@role_required(ROLE_PHARMACIST)
def create_medication():
    """Pharmacist: list a new medication."""
    try:
        fields = _medication_fields(_json_body())
        medication = get_market().medications.save(
            Medication(pharmacien_id=current_account_id(), **fields)
        )
        clear_market_cache()
        return jsonify({'message': "Médicament ajouté avec succès !", 'id': medication.id}), 201

    except InvalidPayload as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.exception("Medication creation failed")
        return jsonify({'message': "Erreur lors de l'ajout", 'erreur': str(e)}), 500


@api_bp.route('/medicaments/<int:medication_id>', methods=['PUT'])
@role_required()
def update_medication(medication_id):
    """Owner: update nom, prix, quantite, description or pharmacieId."""
    try:
        medications = get_market().medications
        medication = medications.get(medication_id)
        if medication is None or medication.pharmacien_id != current_account_id():
            return jsonify({'message': "Action non autorisée."}), 403

        fields = _medication_fields(_json_body(), partial=True)
        medications.save(replace(medication, **fields))
        clear_market_cache()
        return jsonify({'message': "Médicament modifié !"})

    except InvalidPayload as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.exception("Medication update failed")
        return jsonify({'message': "Erreur lors de la modification", 'erreur': str(e)}), 500


@api_bp.route('/medicaments/<int:medication_id>', methods=['DELETE'])
@role_required()
def delete_medication(medication_id):
    """Owner: delete a medication."""
    try:
        medications = get_market().medications
        medication = medications.get(medication_id)
        if medication is None or medication.pharmacien_id != current_account_id():
            return jsonify({'message': "Action non autorisée."}), 403

        medications.delete(medication_id)
        clear_market_cache()
        return jsonify({'message': "Médicament supprimé !"})

    except Exception as e:
        logger.exception("Medication deletion failed")
        return jsonify({'message': "Erreur lors de la suppression", 'erreur': str(e)}), 500


# ─── Pharmacies ───

@api_bp.route('/pharmacies', methods=['GET'])
def get_all_pharmacies():
    """List every pharmacy with its coordinates."""
    try:
        key = make_cache_key_pharmacies()
        pharmacies = cache.get(key)
        if pharmacies is None:
            pharmacies = [p.to_dict() for p in get_market().pharmacies.find_all()]
            cache.set(key, pharmacies)
        return jsonify(pharmacies)

    except Exception as e:
        logger.exception("Listing pharmacies failed")
        return jsonify({'message': "Erreur interne", 'erreur': str(e)}), 500


@api_bp.route('/pharmacies', methods=['POST'])
def create_pharmacy():
    """
    Add a pharmacy.

    Body: nom, adresse (required), latitude, longitude (optional).
    """
    try:
        data = _json_body()
        pharmacy = Pharmacy(
            nom=_as_text(data.get('nom'), 'nom'),
            adresse=_as_text(data.get('adresse'), 'adresse'),
            latitude=_coordinate(data, 'latitude', 90),
            longitude=_coordinate(data, 'longitude', 180),
        )
        pharmacy = get_market().pharmacies.save(pharmacy)
        clear_market_cache()
        return jsonify(pharmacy.to_dict()), 201

    except InvalidPayload as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.exception("Pharmacy creation failed")
        return jsonify({'message': "Erreur lors de l'ajout de la pharmacie", 'erreur': str(e)}), 500


# ─── Chatbot ───

@api_bp.route('/chatbot', methods=['POST'])
def chatbot():
    """Forward a question to the completion API and return its raw response."""
    question = _json_body().get('question')
    if not isinstance(question, str) or not question.strip():
        return jsonify({'message': "La question est requise"}), 400

    try:
        return jsonify(get_market().chatbot.ask(question))
    except ChatbotError as e:
        return jsonify({'message': "Erreur avec l'IA", 'erreur': e.detail}), 500
