import os

from dotenv import load_dotenv

load_dotenv()


def load_config() -> dict[str, str]:
    """KMS_JWT_* settings from the environment (or a .env file)."""
    config = {
        "KMS_JWT_KEY_PATH": os.environ.get("KMS_JWT_KEY_PATH"),
        "KMS_JWT_ALGORITHM": os.environ.get("KMS_JWT_ALGORITHM", "RS256"),
        "KMS_JWT_OVERRIDE": os.environ.get("KMS_JWT_OVERRIDE"),
        "KMS_JWT_TIMEOUT": os.environ.get("KMS_JWT_TIMEOUT"),
        "SECRET_KEY": os.environ.get("FLASK_SECRET_KEY"),
    }
    return {k: v for k, v in config.items() if v is not None}
