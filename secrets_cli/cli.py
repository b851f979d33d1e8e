"""
secrets-cli — entry point for all operations.

Usage:
    secrets-cli init                               # Create .secrets/ in this repo
    secrets-cli setup                              # Import keys after cloning
    secrets-cli key {list|add|remove|import}       # Public key records
    secrets-cli vault {list|create|info|delete|add-member|remove-member|verify}
    secrets-cli sync <vault>                       # Re-key and verify
    secrets-cli {list|get|set|delete|rename|copy} <vault> ...
    secrets-cli export <vault> --format env|dotenv|json
    secrets-cli version
"""

from __future__ import annotations

import argparse
import logging
import sys

from .config import Settings
from .errors import ReencryptionVerificationFailed, SecretsError
from .export import FORMATS, render
from .vault import SecretsVault, VaultState
from .version import __version__


def _global_options(suppress: bool) -> argparse.ArgumentParser:
    """Options accepted both before and after the subcommand."""
    default = argparse.SUPPRESS if suppress else None
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--secrets-dir", default=default, help="Path to secrets directory (default: .secrets)")
    common.add_argument("--email", default=default, help="User email for GPG operations")
    common.add_argument("--gpg-binary", default=default, help="Path to GPG binary")
    common.add_argument("--pass-binary", default=default, help="Path to pass binary")
    common.add_argument(
        "--require-identity", action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Refuse vault operations when no identity can be resolved",
    )
    common.add_argument(
        "--verbose", "-v", action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Enable verbose output",
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _global_options(suppress=True)
    parser = argparse.ArgumentParser(
        prog="secrets-cli",
        description="GPG-based secrets management for Git repositories.",
        parents=[_global_options(suppress=False)],
    )
    sub = parser.add_subparsers(dest="command")

    def add(subparsers, name, **kwargs):
        return subparsers.add_parser(name, parents=[common], **kwargs)

    add(sub, "version", help="Show version")
    add(sub, "init", help="Initialize a new secrets store in this repository")
    add(sub, "setup", help="Configure access after cloning a secrets repository")

    # key
    key_parser = add(sub, "key", help="Manage public keys of team members")
    key_sub = key_parser.add_subparsers(dest="key_command")
    add(key_sub, "list", help="List stored public keys")
    key_add = add(key_sub, "add", help="Add a team member's public key")
    key_add.add_argument("principal", help="Member email")
    key_add.add_argument("--key-file", help="ASCII-armored key file (default: export from keyring)")
    key_remove = add(key_sub, "remove", help="Remove a stored public key")
    key_remove.add_argument("principal", help="Member email")
    add(key_sub, "import", help="Import all stored keys into your GPG keyring")

    # vault
    vault_parser = add(sub, "vault", help="Manage vaults")
    vault_sub = vault_parser.add_subparsers(dest="vault_command")
    add(vault_sub, "list", help="List all vaults")
    v_create = add(vault_sub, "create", help="Create a new vault")
    v_create.add_argument("name")
    v_create.add_argument("--description", "-d", default="", help="Vault description")
    v_info = add(vault_sub, "info", help="Show vault details and members")
    v_info.add_argument("name")
    v_delete = add(vault_sub, "delete", help="Delete a vault and all its secrets")
    v_delete.add_argument("name")
    v_delete.add_argument("--force", "-f", action="store_true", help="Confirm deletion")
    v_add = add(vault_sub, "add-member", help="Grant vault access to a team member")
    v_add.add_argument("vault")
    v_add.add_argument("principal")
    v_remove = add(vault_sub, "remove-member", help="Revoke vault access from a team member")
    v_remove.add_argument("vault")
    v_remove.add_argument("principal")
    v_verify = add(vault_sub, "verify", help="Check encryption matches membership, without changes")
    v_verify.add_argument("name")
    v_verify.add_argument("--all", action="store_true", dest="verify_all", help="Check every secret")

    # sync
    sync_parser = add(sub, "sync", help="Re-encrypt a vault for its members and verify")
    sync_parser.add_argument("vault")
    sync_parser.add_argument("--all", action="store_true", dest="verify_all", help="Verify every secret")

    # secrets
    list_parser = add(sub, "list", help="List all secrets in a vault")
    list_parser.add_argument("vault")
    list_parser.add_argument("--format", choices=("table", "names"), default="table")
    get_parser = add(sub, "get", help="Display a secret value")
    get_parser.add_argument("vault")
    get_parser.add_argument("secret")
    set_parser = add(sub, "set", help="Set a secret value (reads stdin if value omitted)")
    set_parser.add_argument("vault")
    set_parser.add_argument("secret")
    set_parser.add_argument("value", nargs="?")
    delete_parser = add(sub, "delete", aliases=["rm"], help="Permanently delete a secret")
    delete_parser.add_argument("vault")
    delete_parser.add_argument("secret")
    delete_parser.add_argument("--force", "-f", action="store_true", help="Do not ask for confirmation")
    rename_parser = add(sub, "rename", aliases=["mv"], help="Rename a secret within a vault")
    rename_parser.add_argument("vault")
    rename_parser.add_argument("old_name")
    rename_parser.add_argument("new_name")
    copy_parser = add(sub, "copy", aliases=["cp"], help="Copy a secret to another vault")
    copy_parser.add_argument("src_vault")
    copy_parser.add_argument("secret")
    copy_parser.add_argument("dst_vault")
    copy_parser.add_argument("--new-name", help="Name of the copy in the destination vault")

    export_parser = add(sub, "export", help="Export secrets as environment variables")
    export_parser.add_argument("vault")
    export_parser.add_argument("--format", choices=FORMATS, default="env")
    export_parser.add_argument("--prefix", default="", help="Prefix for variable names")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "version":
        print(f"secrets-cli {__version__}")
        return 0
    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = Settings.from_env(
            secrets_dir=args.secrets_dir,
            email=args.email,
            gpg_binary=args.gpg_binary,
            pass_binary=args.pass_binary,
            require_identity=args.require_identity,
            verbose=args.verbose,
        )
        vault = SecretsVault(settings)
        return _dispatch(args, vault)
    except ReencryptionVerificationFailed as err:
        print(f"Error: {err}", file=sys.stderr)
        print(
            f"!! Vault '{err.vault}' is NOT encrypted for its current members.",
            file=sys.stderr,
        )
        return err.exit_code
    except SecretsError as err:
        print(f"Error: {err}", file=sys.stderr)
        return err.exit_code
    except ValueError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    except OSError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1


def _dispatch(args: argparse.Namespace, vault: SecretsVault) -> int:
    command = {"rm": "delete", "mv": "rename", "cp": "copy"}.get(args.command, args.command)
    handler = _COMMANDS[command]
    return handler(args, vault)


# ----------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------

def _cmd_init(args: argparse.Namespace, vault: SecretsVault) -> int:
    _, key_path = vault.init()
    print(f"✓ Initialized secrets store in {vault.registry.root}")
    print(f"✓ Exported your public key to {key_path}")
    print()
    print("Next steps:")
    print("  1. Create a vault:  secrets-cli vault create <name>")
    print("  2. Add a secret:    secrets-cli set <vault> <secret>")
    print("  3. Commit to git:   git add .secrets && git commit")
    return 0


def _cmd_setup(args: argparse.Namespace, vault: SecretsVault) -> int:
    report = vault.setup()
    print(f"Setting up secrets for: {report.email}")
    print(f"Store owner: {report.owner}")
    print()
    print(f"✓ Found your key: {report.key_file}")
    print(f"✓ Imported {report.imported} key(s) to your GPG keyring")
    if report.vaults:
        print()
        print("Available vaults:")
        for listing in report.vaults:
            if listing.record is None:
                continue
            if listing.has_access:
                print(f"  ✓ {listing.name} (access granted)")
            else:
                print(f"  ✗ {listing.name} (no access)")
    print()
    print("Setup complete!")
    return 0


# ----------------------------------------------------------------------
# Keys
# ----------------------------------------------------------------------

def _cmd_key(args: argparse.Namespace, vault: SecretsVault) -> int:
    sub = getattr(args, "key_command", None)

    if sub == "list":
        keys = vault.list_keys()
        print("Stored public keys:")
        for principal in keys:
            print(f"  {principal}")
        if not keys:
            print("  (none)")
        return 0

    elif sub == "add":
        vault.add_key(args.principal, args.key_file)
        print(f"✓ Added key for {args.principal}")
        return 0

    elif sub == "remove":
        vault.remove_key(args.principal)
        print(f"✓ Removed key for {args.principal}")
        return 0

    elif sub == "import":
        imported = vault.import_keys()
        print(f"✓ Imported {imported} key(s) to GPG keyring")
        return 0

    else:
        print("Usage: secrets-cli key {list|add|remove|import}")
        return 0


# ----------------------------------------------------------------------
# Vaults
# ----------------------------------------------------------------------

def _print_reencryption(report) -> None:
    print(f"✓ Re-encrypted {report.secrets} secret(s)")


def _cmd_vault(args: argparse.Namespace, vault: SecretsVault) -> int:
    sub = getattr(args, "vault_command", None)

    if sub == "list":
        listings = vault.list_vaults()
        if not listings:
            print("No vaults found. Create one with: secrets-cli vault create <name>")
            return 0
        print("Vaults:")
        for listing in listings:
            if listing.record is None:
                print(f"  {listing.name} (error loading config)")
                continue
            status = ""
            if listing.has_access is not None:
                status = " ✓" if listing.has_access else " ✗"
            desc = f" - {listing.record.description}" if listing.record.description else ""
            print(f"  {listing.name}{status}{desc}")
        return 0

    elif sub == "create":
        record = vault.create_vault(args.name, args.description)
        print(f"✓ Created vault: {record.name}")
        if record.description:
            print(f"  Description: {record.description}")
        print(f"  Owner: {record.members[0]}")
        return 0

    elif sub == "info":
        info = vault.vault_info(args.name)
        record = info.record
        print(f"Vault: {record.name}")
        if record.description:
            print(f"Description: {record.description}")
        print(f"Created: {record.created_at}")
        if record.updated_at and record.updated_at != record.created_at:
            print(f"Updated: {record.updated_at}")
        print(f"Secrets: {info.secrets}")
        print()
        print("Members:")
        for member in record.members:
            print(f"  - {member}")
        return 0

    elif sub == "delete":
        vault.delete_vault(args.name, force=args.force)
        print(f"✓ Deleted vault: {args.name}")
        return 0

    elif sub == "add-member":
        report = vault.add_member(args.vault, args.principal)
        print(f"✓ Added {args.principal} to vault {args.vault}")
        _print_reencryption(report)
        return 0

    elif sub == "remove-member":
        report = vault.remove_member(args.vault, args.principal)
        print(f"✓ Removed {args.principal} from vault {args.vault}")
        _print_reencryption(report)
        print("  Note: the removed member may keep copies of secrets they already viewed.")
        return 0

    elif sub == "verify":
        result = vault.verify(args.name, verify_all=args.verify_all)
        print(f"Vault: {result.vault}")
        print(f"  Members: {result.expected}")
        for name, count in result.checked.items():
            print(f"  {name}: {count} recipient(s)")
        if result.state is VaultState.CONSISTENT:
            print(f"✓ {result.state.value}")
            return 0
        for problem in result.problems:
            print(f"  ✗ {problem}")
        print(f"✗ {result.state.value}: run 'secrets-cli sync {result.vault}'")
        return 1

    else:
        print("Usage: secrets-cli vault {list|create|info|delete|add-member|remove-member|verify}")
        return 0


def _cmd_sync(args: argparse.Namespace, vault: SecretsVault) -> int:
    print(f"Synchronizing vault: {args.vault}")
    report = vault.sync(args.vault, verify_all=args.verify_all)
    print(f"  Members: {len(report.members)}")
    print(f"  Secrets: {report.secrets}")
    print(f"✓ Synchronized vault: {args.vault}")
    return 0


# ----------------------------------------------------------------------
# Secrets
# ----------------------------------------------------------------------

def confirm(prompt: str, force: bool) -> bool:
    """Ask a yes/no question; non-interactive sessions answer no."""
    if force:
        return True
    if not sys.stdin.isatty():
        return False
    try:
        answer = input(f"{prompt} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _read_value() -> str:
    line = sys.stdin.readline()
    if line.endswith("\n"):
        line = line[:-1]
    return line


def _cmd_list(args: argparse.Namespace, vault: SecretsVault) -> int:
    secrets = vault.list_secrets(args.vault)
    if not secrets:
        print(f"No secrets in vault: {args.vault}")
        return 0
    if args.format == "names":
        for name in secrets:
            print(name)
    else:
        print(f"Secrets in vault '{args.vault}':")
        for name in secrets:
            print(f"  {name}")
    return 0


def _cmd_get(args: argparse.Namespace, vault: SecretsVault) -> int:
    print(vault.get(args.vault, args.secret))
    return 0


def _cmd_set(args: argparse.Namespace, vault: SecretsVault) -> int:
    value = args.value if args.value is not None else _read_value()
    vault.set(args.vault, args.secret, value)
    print(f"✓ Set secret: {args.vault}/{args.secret}")
    return 0


def _cmd_delete(args: argparse.Namespace, vault: SecretsVault) -> int:
    if not confirm(
        f"Are you sure you want to delete secret {args.vault}/{args.secret}?", args.force,
    ):
        print(f"Error: deletion of secret {args.vault}/{args.secret} cancelled", file=sys.stderr)
        return 1
    vault.delete(args.vault, args.secret)
    print(f"✓ Deleted secret: {args.vault}/{args.secret}")
    return 0


def _cmd_rename(args: argparse.Namespace, vault: SecretsVault) -> int:
    vault.rename(args.vault, args.old_name, args.new_name)
    print(f"✓ Renamed secret: {args.vault}/{args.old_name} -> {args.vault}/{args.new_name}")
    return 0


def _cmd_copy(args: argparse.Namespace, vault: SecretsVault) -> int:
    target = vault.copy(args.src_vault, args.secret, args.dst_vault, args.new_name)
    print(f"✓ Copied secret: {args.src_vault}/{args.secret} -> {args.dst_vault}/{target}")
    return 0


def _cmd_export(args: argparse.Namespace, vault: SecretsVault) -> int:
    secrets = vault.export(args.vault)
    sys.stdout.write(render(secrets, args.format, args.prefix))
    return 0


_COMMANDS = {
    "init": _cmd_init,
    "setup": _cmd_setup,
    "key": _cmd_key,
    "vault": _cmd_vault,
    "sync": _cmd_sync,
    "list": _cmd_list,
    "get": _cmd_get,
    "set": _cmd_set,
    "delete": _cmd_delete,
    "rename": _cmd_rename,
    "copy": _cmd_copy,
    "export": _cmd_export,
}


if __name__ == "__main__":
    sys.exit(main())
