#!/usr/bin/env python3
"""
IntakeGate Command Line Interface

Usage:
    intakegate mint --kind existing_workspace --workspace <id> [--hours 168]
    intakegate verify --token <token>
    intakegate hash --token <token>

The signing secret comes from --secret or INTAKE_LINK_SECRET.
"""

import argparse
import json
import os
import sys
from datetime import timedelta


def _secret(args) -> str:
    secret = args.secret or os.getenv("INTAKE_LINK_SECRET", "")
    if not secret:
        print("error: no signing secret (use --secret or INTAKE_LINK_SECRET)", file=sys.stderr)
        sys.exit(2)
    return secret


def cmd_mint(args):
    """Mint a token for support and testing. Not registered anywhere."""
    from intakegate import IntakeTokenCodec, InvalidClaimsError

    codec = IntakeTokenCodec(_secret(args))
    now = codec.now()
    try:
        token = codec.create_token(
            args.kind,
            now + timedelta(hours=args.hours),
            workspace_id=args.workspace,
            tenant_id=args.tenant,
            created_by=args.created_by,
            now=now,
        )
    except InvalidClaimsError as e:
        print(f"✗ {e.code}: {e.message}", file=sys.stderr)
        return 1

    print(token)
    return 0


def cmd_verify(args):
    """Verify a token and print its status and claims."""
    from intakegate import IntakeTokenCodec

    codec = IntakeTokenCodec(_secret(args))
    result = codec.verify_token(args.token.strip())

    if result.is_valid():
        print(f"✓ {result.status.value}")
        print(json.dumps(result.claims.to_payload(), indent=2))
        return 0
    else:
        print(f"✗ {result.status.value.upper()}: {result.reason}")
        return 1


def cmd_hash(args):
    """Print registry lookup values for a token."""
    from intakegate import token_hash, token_tail

    token = args.token.strip()
    print(f"tokenHash: {token_hash(token)}")
    print(f"tokenTail: {token_tail(token)}")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="IntakeGate CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  intakegate mint -k existing_workspace -w ws-123 --tenant acme
  intakegate mint -k new_client --hours 72
  intakegate verify -t eyJhbGciOi...
  intakegate hash -t eyJhbGciOi...
        """
    )
    parser.add_argument("-s", "--secret", help="Signing secret (default: $INTAKE_LINK_SECRET)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # mint
    mint_parser = subparsers.add_parser("mint", help="Mint an intake token")
    mint_parser.add_argument(
        "-k", "--kind", required=True,
        choices=["new_client", "existing_workspace"], help="Link kind"
    )
    mint_parser.add_argument("-w", "--workspace", help="Workspace id (existing_workspace only)")
    mint_parser.add_argument("--tenant", help="Tenant id")
    mint_parser.add_argument("--created-by", help="Issuing actor")
    mint_parser.add_argument("--hours", type=float, default=72, help="Hours until expiry")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify an intake token")
    verify_parser.add_argument("-t", "--token", required=True, help="Token string")

    # hash
    hash_parser = subparsers.add_parser("hash", help="Compute registry hash and tail")
    hash_parser.add_argument("-t", "--token", required=True, help="Token string")

    args = parser.parse_args()

    if args.command == "mint":
        sys.exit(cmd_mint(args))
    elif args.command == "verify":
        sys.exit(cmd_verify(args))
    elif args.command == "hash":
        sys.exit(cmd_hash(args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
