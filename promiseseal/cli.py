#!/usr/bin/env python3
"""
PromiseSeal Command Line Interface

Usage:
    promiseseal verify --artifact <file> [--records <file>]
    promiseseal challenge --promise <file>
    promiseseal fingerprint --credential-id <id>
    promiseseal certificate --certificate <file> --public-key <file>
    promiseseal keygen [--output <file>]
"""

import argparse
import json
import sys


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_text(path: str) -> str:
    with open(path, 'r', encoding='utf-8') as f:
        return f.read().strip()


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def cmd_verify(args):
    """Verify a downloaded promise file."""
    from promiseseal import verify_document

    document = load_json(args.artifact)

    lookup = None
    if args.records:
        records = load_json(args.records)
        lookup = records.get

    result = verify_document(document, fingerprint_lookup=lookup)

    print(json.dumps(result.to_dict(), indent=2))
    if result.is_valid:
        print(f"\n✓ VALID promise by {result.creator}", file=sys.stderr)
        return 0
    else:
        print(f"\n✗ INVALID: {result.error_details}", file=sys.stderr)
        for check in result.failed_checks:
            print(f"  - {check}", file=sys.stderr)
        return 1


def cmd_challenge(args):
    """Derive the signing challenge for a promise."""
    from promiseseal import PromiseSnapshot, derive_challenge

    try:
        snapshot = PromiseSnapshot.from_mapping(load_json(args.promise))
    except (KeyError, ValueError) as e:
        print(f"✗ Promise is missing snapshot fields: {e}", file=sys.stderr)
        return 1

    print(f"challenge: {derive_challenge(snapshot)}")
    return 0


def cmd_fingerprint(args):
    """Compute the fingerprint hash of a credential id."""
    from promiseseal import fingerprint_hash

    print(f"fingerprint_hash: {fingerprint_hash(args.credential_id)}")
    return 0


def cmd_certificate(args):
    """Verify a promise certificate for a public key."""
    from promiseseal import CertificateAuthority, MalformedCertificate

    certificate = load_text(args.certificate)
    with open(args.public_key, 'r', encoding='utf-8') as f:
        public_key = f.read()
    authority = CertificateAuthority(secret=args.secret)

    if authority.verify(certificate, public_key):
        record = authority.decode(certificate)
        print(f"✓ VALID certificate for promise {record.promise_id}")
        print(json.dumps(record.data, indent=2))
        return 0

    print("✗ INVALID certificate")
    try:
        record = authority.decode(certificate)
        print(f"  issued for promise {record.promise_id} by {record.data.get('issuer')}")
    except MalformedCertificate as e:
        print(f"  {e.message}")
    return 1


def cmd_keygen(args):
    """Generate a per-promise RSA key pair."""
    from promiseseal import generate_promise_keypair

    keypair = generate_promise_keypair(key_size=args.key_size)
    data = {
        "publicKey": keypair.public_key_pem,
        "privateKey": keypair.private_key_pem,
    }

    if args.output:
        save_json(data, args.output)
        print(f"Key pair saved to: {args.output}")
    else:
        print(keypair.public_key_pem)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="PromiseSeal CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  promiseseal verify -a promise-Rent-42.json
  promiseseal verify -a record.json -r fingerprints.json
  promiseseal challenge -p promise.json
  promiseseal fingerprint -c AAECAwQ
  promiseseal certificate -C cert.txt -k public.pem
  promiseseal keygen -o keypair.json
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify a downloaded promise file")
    verify_parser.add_argument("-a", "--artifact", required=True, help="Promise JSON file")
    verify_parser.add_argument("-r", "--records", help="JSON map of promise id to stored fingerprint hash")

    # challenge
    challenge_parser = subparsers.add_parser("challenge", help="Derive a signing challenge")
    challenge_parser.add_argument("-p", "--promise", required=True, help="Promise JSON file")

    # fingerprint
    fingerprint_parser = subparsers.add_parser("fingerprint", help="Hash a credential id")
    fingerprint_parser.add_argument("-c", "--credential-id", required=True, help="Credential id")

    # certificate
    cert_parser = subparsers.add_parser("certificate", help="Verify a promise certificate")
    cert_parser.add_argument("-C", "--certificate", required=True, help="File holding the base64 certificate")
    cert_parser.add_argument("-k", "--public-key", required=True, help="Public key PEM file")
    cert_parser.add_argument("-s", "--secret", help="Authority secret (default: configured secret)")

    # keygen
    keygen_parser = subparsers.add_parser("keygen", help="Generate a promise key pair")
    keygen_parser.add_argument("-o", "--output", help="Output file for the key pair")
    keygen_parser.add_argument("-b", "--key-size", type=int, default=2048, help="RSA key size in bits")

    args = parser.parse_args(argv)

    if args.command == "verify":
        return cmd_verify(args)
    elif args.command == "challenge":
        return cmd_challenge(args)
    elif args.command == "fingerprint":
        return cmd_fingerprint(args)
    elif args.command == "certificate":
        return cmd_certificate(args)
    elif args.command == "keygen":
        return cmd_keygen(args)
    else:
        parser.print_help()
        return 2


if __name__ == "__main__":
    sys.exit(main())
