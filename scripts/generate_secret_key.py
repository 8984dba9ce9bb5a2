"""
Generate the signing keys for access and refresh tokens.

Usage:
    python scripts/generate_secret_key.py
"""

import secrets


def generate_secret_key(length: int = 64) -> str:
    """Return a URL-safe random key built from ``length`` random bytes."""
    return secrets.token_urlsafe(length)


if __name__ == "__main__":
    access_key = generate_secret_key()
    refresh_key = generate_secret_key()
    print("\n" + "=" * 70)
    print("Token signing keys")
    print("=" * 70)
    print("\nAdd these to your .env file:\n")
    print(f"SECRET_KEY={access_key}")
    print(f"REFRESH_SECRET_KEY={refresh_key}\n")
    print("Use different values per environment and keep them out of version control.\n")
