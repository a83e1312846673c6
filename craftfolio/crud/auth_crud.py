from typing import Optional

from sqlalchemy.orm import Session

from craftfolio.models.user import AuthUser, Profile, UserRole
from craftfolio.utils.security import hash_password, verify_password

SIGNUP_ROLES = {UserRole.SEEKER.value, UserRole.HIRER.value}


def get_user_by_email(db: Session, email: str) -> Optional[AuthUser]:
    return db.query(AuthUser).filter(AuthUser.email == email.lower()).first()


def get_user_by_id(db: Session, user_id: str) -> Optional[AuthUser]:
    return db.query(AuthUser).filter(AuthUser.id == user_id).first()


def create_profile_for(db: Session, user: AuthUser) -> Profile:
    """Stand-in for the store-side signup trigger: profile row from user metadata"""
    metadata = user.user_metadata or {}
    role = metadata.get("role")
    profile = Profile(
        id=user.id,
        email=user.email,
        full_name=metadata.get("full_name") or user.email.split("@")[0],
        avatar_url=metadata.get("avatar_url"),
        role=role if role in SIGNUP_ROLES else UserRole.SEEKER
    )
    db.add(profile)
    return profile


def create_user(
    db: Session,
    email: str,
    password: Optional[str] = None,
    metadata: Optional[dict] = None,
    provider: str = "email",
    provider_id: Optional[str] = None,
    with_profile: bool = True
) -> AuthUser:
    if get_user_by_email(db, email):
        raise ValueError("User already registered")

    user = AuthUser(
        email=email.lower(),
        hashed_password=hash_password(password) if password else None,
        user_metadata=dict(metadata or {}),
        provider=provider,
        provider_id=provider_id
    )
    db.add(user)
    db.flush()

    if with_profile:
        create_profile_for(db, user)

    db.commit()
    db.refresh(user)
    return user


def authenticate_user(db: Session, email: str, password: str) -> Optional[AuthUser]:
    user = get_user_by_email(db, email)
    if not user or not user.hashed_password:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def get_or_create_oauth_user(
    db: Session,
    email: str,
    provider: str,
    provider_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    with_profile: bool = True
) -> AuthUser:
    user = get_user_by_email(db, email)
    if not user:
        # OAuth users have no password; the role defaults through the profile
        user = create_user(
            db,
            email=email,
            metadata=metadata,
            provider=provider,
            provider_id=provider_id,
            with_profile=with_profile
        )
    return user
