#!/usr/bin/env python3
"""
dcard Command Line Interface

Usage:
    dcard fingerprint --file <card>
    dcard verify --file <card> [--trusted-keys <file>] [--strict]
    dcard sign <input> [output] [--key-id <id>]
    dcard import <reference> [--base-url <url>] [--gateway-url <url>] [--strict] [--db <file>]
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

PRIVATE_KEY_ENV = "DCARD_PRIVKEY_BASE64URL"


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def cmd_fingerprint(args):
    """Print the fingerprint of a card."""
    from dcard import compute_fingerprint

    card = load_json(args.file)
    print(compute_fingerprint(card).fingerprint)
    return 0


def cmd_verify(args):
    """Verify a card file offline."""
    from dcard import CardImportError, build_verification_config, verify_card

    card = load_json(args.file)
    config = build_verification_config(
        strict=True if args.strict else None,
        trusted_keys_path=args.trusted_keys,
    )

    try:
        result = verify_card(card, config)
    except CardImportError as e:
        print(f"✗ {e.user_message}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_dict(), indent=2))
    if result.verified:
        print(f"\n✓ VERIFIED ({result.key_id})", file=sys.stderr)
    elif result.unsigned:
        print("\n! UNSIGNED", file=sys.stderr)
    else:
        print(f"\n! UNVERIFIED: {result.reason}", file=sys.stderr)
    return 0


def cmd_sign(args):
    """Fingerprint and sign a card with the issuer key from the environment."""
    from dcard import sign_card
    from dcard.util import b64url_decode

    if not args.input:
        print("Usage: dcard sign <input.dcard> [output.dcard]", file=sys.stderr)
        return 1

    private_key_text = os.getenv(PRIVATE_KEY_ENV)
    if not private_key_text:
        print(f"Missing {PRIVATE_KEY_ENV} env var for signing.", file=sys.stderr)
        return 1

    input_path = Path(args.input)
    if not input_path.is_file():
        print(f"Input card not found: {input_path}", file=sys.stderr)
        return 1

    try:
        private_key = b64url_decode(private_key_text)
        card = load_json(str(input_path))
        signed = sign_card(card, private_key, key_id=args.key_id)
    except (ValueError, TypeError) as e:
        print(f"Signing failed: {e}", file=sys.stderr)
        return 1

    output_path = Path(args.output) if args.output else input_path.parent / f"{signed['fingerprint']}.dcard"
    save_json(signed, str(output_path))
    print(f"Signed card written to {output_path}")
    return 0


def cmd_import(args):
    """Resolve, verify and store a card reference."""
    from dcard import ImportResolver, SqliteCardStore, build_verification_config, process_import

    config = build_verification_config(
        strict=True if args.strict else None,
        trusted_keys_path=args.trusted_keys,
    )
    store = SqliteCardStore(args.db) if args.db else None
    if store is not None:
        store.init_db()

    async def run():
        async with ImportResolver(base_url=args.base_url, gateway_url=args.gateway_url) as resolver:
            return await process_import(
                args.reference,
                resolver=resolver,
                config=config,
                store=store,
                on_notify=lambda message: print(message, file=sys.stderr),
            )

    outcome = asyncio.run(run())
    if outcome is None or not outcome.ok:
        return 1

    print(json.dumps(outcome.result.to_dict(), indent=2))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="dcard",
        description="dcard card integrity and trust CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dcard fingerprint -f card.dcard
  dcard verify -f card.dcard -t trusted_keys.json
  DCARD_PRIVKEY_BASE64URL=... dcard sign card.dcard
  dcard import https://example.org/cards/sha256-abc.dcard --db data/dcard.db
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # fingerprint
    fp_parser = subparsers.add_parser("fingerprint", help="Compute card fingerprint")
    fp_parser.add_argument("-f", "--file", required=True, help="Card JSON file")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify a card file")
    verify_parser.add_argument("-f", "--file", required=True, help="Card JSON file")
    verify_parser.add_argument("-t", "--trusted-keys", help="Trusted keys JSON file")
    verify_parser.add_argument("--strict", action="store_true", help="Reject unsigned or invalid signatures")

    # sign
    sign_parser = subparsers.add_parser("sign", help="Sign a card (key from DCARD_PRIVKEY_BASE64URL)")
    sign_parser.add_argument("input", nargs="?", help="Card to sign")
    sign_parser.add_argument("output", nargs="?", help="Output path (default: <fingerprint>.dcard)")
    sign_parser.add_argument("-k", "--key-id", help="Key identifier for the signature block")

    # import
    import_parser = subparsers.add_parser("import", help="Import a card from a URL or path")
    import_parser.add_argument("reference", help="Card URL or path")
    import_parser.add_argument("-b", "--base-url", help="Base URL for relative references and the manifest")
    import_parser.add_argument("-g", "--gateway-url", help="Gateway base URL for the fallback path")
    import_parser.add_argument("-t", "--trusted-keys", help="Trusted keys JSON file")
    import_parser.add_argument("--strict", action="store_true", help="Reject unsigned or invalid signatures")
    import_parser.add_argument("--db", help="SQLite database to store the card in")

    args = parser.parse_args(argv)

    if args.command == "fingerprint":
        return cmd_fingerprint(args)
    elif args.command == "verify":
        return cmd_verify(args)
    elif args.command == "sign":
        return cmd_sign(args)
    elif args.command == "import":
        return cmd_import(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
