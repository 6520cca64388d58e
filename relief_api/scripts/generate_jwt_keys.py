#!/usr/bin/env python3
"""
Script to generate an RS256 key pair for JWT signing.
Configuring both keys keeps tokens valid across process restarts.
"""

from relief_api.services.auth import generate_dev_key_pair


if __name__ == "__main__":
    private_key, public_key = generate_dev_key_pair()

    print("=== JWT PRIVATE KEY ===")
    print(private_key)
    print("\n=== JWT PUBLIC KEY ===")
    print(public_key)

    print("\n=== Environment Variables ===")
    newline = "\\n"
    print(f'JWT_PRIVATE_KEY="{private_key.replace(chr(10), newline)}"')
    print(f'JWT_PUBLIC_KEY="{public_key.replace(chr(10), newline)}"')
