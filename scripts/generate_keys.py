"""
Generate an RSA-2048 keypair for local RS256 bearer tokens.

In production tokens come from the authentication provider and only the
provider's public key is needed. Locally, this keypair lets you mint
tokens that the API accepts.

Usage:
    python scripts/generate_keys.py                    # write keys/private.pem, keys/public.pem
    python scripts/generate_keys.py --token user_123   # also print a customer token
    python scripts/generate_keys.py --token admin_1 --admin
"""

import argparse
import os
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


def generate_keys(output_dir: str = "keys") -> tuple[Path, Path]:
    """Generate an RSA-2048 keypair and write PEM files. Existing keys are kept."""
    keys_dir = Path(output_dir)
    keys_dir.mkdir(parents=True, exist_ok=True)
    private_path = keys_dir / "private.pem"
    public_path = keys_dir / "public.pem"

    if private_path.exists() and public_path.exists():
        print(f"Keys already present in {keys_dir.resolve()}")
        return private_path, public_path

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_path.write_bytes(private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ))
    public_path.write_bytes(private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ))

    print("RSA keypair generated:")
    print(f"  Private key: {private_path.resolve()}")
    print(f"  Public key:  {public_path.resolve()}")
    return private_path, public_path


def mint_token(subject: str, email: str | None, admin: bool) -> str:
    # Imported late so key generation works before the app is configured
    from app.config import settings
    from app.core.security import create_access_token

    role = settings.ADMIN_ROLE if admin else None
    return create_access_token(subject, email=email, role=role)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--output-dir", default="keys")
    parser.add_argument("--token", metavar="SUBJECT", help="print a dev token for SUBJECT")
    parser.add_argument("--email", default=None)
    parser.add_argument("--admin", action="store_true", help="grant the admin role")
    args = parser.parse_args()

    generate_keys(args.output_dir)
    if args.token:
        print(mint_token(args.token, args.email, args.admin))


if __name__ == "__main__":
    # Run from project root
    project_root = Path(__file__).resolve().parent.parent
    os.chdir(project_root)
    main()
