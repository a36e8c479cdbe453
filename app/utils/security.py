import hashlib
import hmac
from datetime import datetime, timedelta
from jose import jwt, JWTError
from config.config import Config

# JWT settings
SECRET_KEY = Config.SECRET_KEY
ALGORITHM = "HS256"


def generate_token(data: dict, expires_delta: timedelta = None) -> str:
    """Generate JWT token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=Config.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> dict:
    """Verify and decode JWT token"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def compute_hmac_signature(secret: str, raw_body: bytes) -> str:
    """Hex HMAC-SHA256 digest of a raw request body"""
    return hmac.new(secret.encode('utf-8'), raw_body, hashlib.sha256).hexdigest()


def signatures_match(expected: str, provided: str) -> bool:
    """Constant-time comparison of two hex signatures"""
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.strip().lower(), provided.strip().lower())


def get_client_ip(headers) -> str:
    """Derive the caller's IP from proxy headers.

    The first X-Forwarded-For hop wins, then X-Real-IP, else "unknown".
    """
    forwarded_for = headers.get('X-Forwarded-For')
    if forwarded_for:
        first_hop = forwarded_for.split(',')[0].strip()
        if first_hop:
            return first_hop

    real_ip = headers.get('X-Real-IP')
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return 'unknown'
