"""Member registration and login"""

import logging
import random
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from harambee_sacco.config import settings
from harambee_sacco.domain.exceptions import AuthenticationFailed, Conflict, NotFound, ValidationError
from harambee_sacco.infrastructure.database.repositories import MemberRepository
from harambee_sacco.infrastructure.security import MIN_PASSWORD_LENGTH, hash_password, is_valid_password, verify_password
from harambee_sacco.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

MEMBER_NUMBER_ATTEMPTS = 5


async def _new_member_number(repo: MemberRepository) -> str:
    """
    {prefix}-{last 6 digits of epoch ms}; collisions fall back to random digits.
    """
    candidate = f"{settings.member_number_prefix}-{str(int(utcnow().timestamp() * 1000))[-6:]}"
    for _ in range(MEMBER_NUMBER_ATTEMPTS):
        if not await repo.member_number_exists(candidate):
            return candidate
        candidate = f"{settings.member_number_prefix}-{random.randint(0, 999_999):06d}"
    raise Conflict("Could not allocate a unique member number")


async def register_member(
    db: AsyncSession,
    first_name: Optional[str],
    last_name: Optional[str],
    phone: Optional[str],
    password: Optional[str],
    email: Optional[str] = None,
    id_number: Optional[str] = None,
    date_of_birth: Optional[datetime] = None,
    address: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create an active member with a hashed password.

    Raises:
        ValidationError: required field missing or password too short
        Conflict: email or phone already registered
    """
    if not first_name or not last_name or not phone or not password:
        raise ValidationError("First name, last name, phone, and password are required")
    if not is_valid_password(password):
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    repo = MemberRepository(db)
    if email and await repo.find_by_email(email):
        raise Conflict("An account with this email already exists")
    if await repo.find_by_phone(phone):
        raise Conflict("An account with this phone number already exists")

    member = await repo.create(
        member_number=await _new_member_number(repo),
        first_name=first_name,
        last_name=last_name,
        email=email or None,
        phone=phone,
        id_number=id_number or None,
        date_of_birth=date_of_birth,
        address=address or None,
        password_hash=hash_password(password),
        is_active=True,
        joined_at=utcnow(),
    )
    await db.commit()

    logger.info("Member registered", extra={"member_id": member.id, "member_number": member.member_number})
    return {
        "id": member.id,
        "memberNumber": member.member_number,
        "firstName": member.first_name,
        "lastName": member.last_name,
    }


async def login_member(
    db: AsyncSession,
    password: Optional[str],
    email: Optional[str] = None,
    phone: Optional[str] = None,
    member_number: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Authenticate by email, phone or member number (first one given wins).

    Raises:
        ValidationError: no identifier or no password
        NotFound: no member matches the identifier
        AuthenticationFailed: password does not match, or no password is set
    """
    if not email and not phone and not member_number:
        raise ValidationError("Please provide email, phone number, or member number")
    if not password:
        raise ValidationError("Password is required")

    member = await MemberRepository(db).find_by_login(email=email, phone=phone, member_number=member_number)
    if member is None:
        raise NotFound("Member not found. Please check your credentials.")

    if not member.password_hash or not verify_password(password, member.password_hash):
        raise AuthenticationFailed("Invalid password")

    member.last_login_at = utcnow()
    await db.commit()

    return member.to_dict(exclude=("password_hash", "two_factor_secret"))
