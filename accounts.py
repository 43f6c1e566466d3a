import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from passlib.context import CryptContext

import schemas
from config import Settings
from database import guarded, oid
from errors import ValidationError

logger = logging.getLogger("bookrental.accounts")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Helpers

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)

def is_bcrypt_hash(value: str) -> bool:
    return value.startswith("$2")

def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)

def public_user(doc) -> dict:
    return {
        "id": str(doc["_id"]),
        "name": doc.get("name"),
        "email": doc.get("email"),
        "role": doc.get("role", "user"),
        "address": doc.get("address"),
        "phone": doc.get("phone"),
    }

def token_for(doc, settings: Settings) -> str:
    return create_access_token(
        {"sub": str(doc["_id"]), "name": doc.get("name"), "role": doc.get("role", "user"), "email": doc.get("email")},
        settings,
    )


class UserAccounts:
    def __init__(self, db, settings: Settings):
        self.users = db["user"]
        self.settings = settings

    @guarded
    def register(self, name, password, email=None, role="user", address=None, phone=None) -> dict:
        if not name or not password:
            raise ValidationError("Name & password required")
        if role not in ("user", "admin"):
            raise ValidationError("Role must be user or admin")
        if email and self.users.find_one({"email": email}):
            raise ValidationError("Email already registered")
        doc = schemas.User(
            name=name, email=email, password=hash_password(password), role=role, address=address, phone=phone
        ).model_dump()
        res = self.users.insert_one(doc)
        doc["_id"] = res.inserted_id
        logger.info("User registered | id=%s role=%s", res.inserted_id, role)
        return {"token": token_for(doc, self.settings), "user": public_user(doc)}

    @guarded
    def authenticate(self, email, password) -> Optional[dict]:
        """Return the user document when the password matches.

        Rows created before hashing was introduced hold plaintext; a
        matching plaintext password is re-hashed in place.
        """
        user = self.users.find_one({"email": email})
        if not user:
            return None
        stored = user.get("password") or ""
        if is_bcrypt_hash(stored):
            return user if verify_password(password, stored) else None
        if stored and stored == password:
            self.users.update_one({"_id": user["_id"]}, {"$set": {"password": hash_password(password)}})
            logger.info("Upgraded legacy password hash | id=%s", user["_id"])
            return user
        return None

    @guarded
    def get(self, user_id: str) -> Optional[dict]:
        key = oid(user_id)
        return self.users.find_one({"_id": key}) if key is not None else None


