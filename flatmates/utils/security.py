from passlib.context import CryptContext
from jose import jwt
from flatmates.config import JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRE_DAYS
from datetime import datetime, timedelta, timezone


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def verify_password(plain_password, hashed_password):
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password):
    return pwd_context.hash(password)

def create_access_token(user: dict, expires_delta: timedelta = None):
    """Signed bearer token naming the user as subject."""
    if expires_delta is None:
        expires_delta = timedelta(days=JWT_EXPIRE_DAYS)
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(user["_id"]),
        "userType": user.get("userType"),
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)

def decode_access_token(token: str) -> dict:
    # Raises jose.JWTError (ExpiredSignatureError included) on a bad token
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
