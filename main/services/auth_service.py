import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone as dt_timezone

import jwt
from django.conf import settings
from django.contrib.auth.hashers import check_password
from django.db import transaction
from django.utils import timezone

from main.models import User, Session
from stock.services.base_service import AuthenticationError, ValidationError

logger = logging.getLogger(__name__)


def token_fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class AuthService:
    JWT_ALGORITHM = 'HS256'

    @classmethod
    def _secret(cls):
        return settings.JWT_SECRET_KEY

    @classmethod
    @transaction.atomic
    def login(cls, email, password, ip_address='', user_agent=''):
        if not email or not password:
            raise ValidationError('Please provide email and password', 'email')

        user = User.objects.filter(email=email.strip().lower()).first()

        if not user or not check_password(password, user.password):
            logger.warning("Failed login for %s from %s", email, ip_address)
            raise AuthenticationError('Invalid credentials')

        if user.status != User.UserStatus.ACTIVE:
            raise AuthenticationError(f'Account {user.status}')

        token = cls._generate_token(user)

        Session.objects.create(
            user=user,
            ip_address=ip_address or '',
            user_agent=(user_agent or '')[:255],
            payload=token_fingerprint(token),
        )

        User.objects.filter(id=user.id).update(
            last_login_at=timezone.now(),
            last_login_ip=ip_address or None,
        )

        logger.info("User %s logged in", user.username)

        return {'token': token, 'user': user}

    @classmethod
    def logout(cls, token):
        deleted, _ = Session.objects.filter(payload=token_fingerprint(token)).delete()
        if not deleted:
            raise AuthenticationError('Invalid token')

    @classmethod
    def get_user_from_token(cls, token):
        return cls._verify_token(token)

    @classmethod
    def _generate_token(cls, user):
        now = datetime.now(dt_timezone.utc)
        payload = {
            'id': user.id,
            'role': user.role,
            'exp': now + timedelta(hours=settings.JWT_EXPIRY_HOURS),
            'iat': now,
            'jti': uuid.uuid4().hex,
        }
        return jwt.encode(payload, cls._secret(), algorithm=cls.JWT_ALGORITHM)

    @classmethod
    def _verify_token(cls, token):
        try:
            payload = jwt.decode(token, cls._secret(), algorithms=[cls.JWT_ALGORITHM])
        except jwt.InvalidTokenError:
            return None

        user = User.objects.filter(id=payload.get('id')).first()
        if not user:
            return None

        if not Session.objects.filter(user=user, payload=token_fingerprint(token)).exists():
            return None

        return user
