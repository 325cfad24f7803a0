#!/usr/bin/env python3
"""
Generate a secure SECRET_KEY for the pick pool
"""

import secrets


def generate_secrets():
    """Print a random SECRET_KEY ready for .env"""
    print("🔐 Generating secure secrets for the pick pool...")
    print("=" * 50)

    print(f"SECRET_KEY={secrets.token_urlsafe(32)}")

    print("=" * 50)
    print("📝 Copy this value to your .env file, then add ODDS_API_KEY")
    print("⚠️  Keep secrets out of version control!")


if __name__ == "__main__":
    generate_secrets()
