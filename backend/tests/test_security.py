"""
Tests du hachage des mots de passe et des jetons JWT.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from app.config import settings
from app.exceptions import AuthenticationError
from app.security import create_access_token, decode_access_token, hash_password, verify_password


def test_hash_et_verification():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("mauvais", hashed)


def test_jeton_contient_l_id_utilisateur():
    user_id = uuid.uuid4()
    assert decode_access_token(create_access_token(user_id)) == user_id


def test_jeton_expire_rejete():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_jeton_signe_avec_une_autre_cle_rejete():
    token = jwt.encode({"sub": str(uuid.uuid4())}, "autre-cle", algorithm=settings.ALGORITHM)
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_jeton_sans_sub_rejete():
    token = jwt.encode({"role": "admin"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_jeton_mal_forme_rejete():
    with pytest.raises(AuthenticationError):
        decode_access_token("pas-un-jeton")
