import os
from dotenv import load_dotenv
from pathlib import Path

# Project root (the directory holding the flatmates package)
BASE_DIR = Path(__file__).resolve().parent.parent

dotenv_path = os.path.join(BASE_DIR, ".env")
load_dotenv(dotenv_path=dotenv_path)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Database
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "flatmates")

# JWT
INSECURE_JWT_SECRET = "your_jwt_secret"
JWT_SECRET = os.getenv("JWT_SECRET", INSECURE_JWT_SECRET)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))

# Mail (SendGrid)
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
EMAIL_USER = os.getenv("EMAIL_USER")

# Listing images (Cloudinary); without a cloud name they stay in UPLOAD_DIR
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

GOOGLE_WEB_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")

CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:3000")
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(BASE_DIR, "uploads"))

OTP_TTL_SECONDS = 600


def insecure_settings():
    """Names of settings that are still running on their insecure fallback."""
    problems = []
    if JWT_SECRET == INSECURE_JWT_SECRET:
        problems.append("JWT_SECRET")
    if not SENDGRID_API_KEY or not EMAIL_USER:
        problems.append("SENDGRID_API_KEY/EMAIL_USER")
    if CLOUDINARY_CLOUD_NAME and not (CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET):
        problems.append("CLOUDINARY_API_KEY/CLOUDINARY_API_SECRET")
    return problems
