#!/usr/bin/env python3
"""
Generate secure secrets for AnalfaBet
Prints a SECRET_KEY and WTF_CSRF_SECRET_KEY ready to paste into .env
"""

import secrets


def generate_secrets():
    """Generate secure random keys for the application"""
    print("🔐 Generating secure secrets for AnalfaBet...")
    print("=" * 50)

    print(f"SECRET_KEY={secrets.token_urlsafe(32)}")
    print(f"WTF_CSRF_SECRET_KEY={secrets.token_urlsafe(32)}")

    print("=" * 50)
    print("📝 Copy these values to your .env file")
    print("⚠️  Never commit them to version control!")


if __name__ == "__main__":
    generate_secrets()
