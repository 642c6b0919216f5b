"""Command line entry point for collaborative documents."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from .config import (
    config_exists,
    config_number,
    default_config,
    default_config_path,
    edit_config,
    load_config,
    merge_optional,
    resolve_relays,
    write_config,
)
from .documents import DocumentProtocol
from .errors import CollabError
from .pointer import DEFAULT_TARGET_KIND
from .resolver import IdentifierResolver, Nip05Lookup
from .transport import KeysSigner, NostrRelayPool

logger = logging.getLogger("collab_publish")


def _load_template(path: str) -> dict:
    try:
        if path == "-":
            payload = json.load(sys.stdin)
        else:
            with open(path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise SystemExit(f"Error reading {path}: {exc}")
    if not isinstance(payload, dict):
        raise SystemExit(f"Error reading {path}: template must be a JSON object")
    return payload


def _signer_from(args: argparse.Namespace, config: dict) -> Optional[KeysSigner]:
    privkey = merge_optional(args.privkey, config.get("privkey") or None)
    if not privkey:
        return None
    return KeysSigner.parse(privkey)


def _build_protocol(pool: NostrRelayPool, signer: Optional[KeysSigner], config: dict, relays: List[str]) -> DocumentProtocol:
    hints = int(config_number(config, "relay_hints", 2))
    return DocumentProtocol(
        pool,
        signer,
        resolver=IdentifierResolver(Nip05Lookup(timeout=config_number(config, "query_timeout", 10))),
        relay_hints=relays[:hints],
        default_target_kind=int(config_number(config, "default_target_kind", DEFAULT_TARGET_KIND)),
        signer_timeout=config_number(config, "signer_timeout", 30),
    )


def _open_pool(args: argparse.Namespace, config: dict) -> tuple[NostrRelayPool, List[str]]:
    relays = resolve_relays(args.relay, config)
    return NostrRelayPool(relays, timeout=config_number(config, "query_timeout", 10)), relays


async def _create(args: argparse.Namespace, config: dict) -> None:
    signer = _signer_from(args, config)
    if signer is None:
        raise SystemExit("Error: --privkey is required for the create command (or set privkey in config)")
    if args.kind < 0:
        raise SystemExit(f'Error: Invalid kind "{args.kind}"')
    template = _load_template(args.file)
    pool, relays = _open_pool(args, config)
    logger.info("Connecting to relays…")
    async with pool:
        protocol = _build_protocol(pool, signer, config, relays)
        result = await protocol.create(
            template,
            target_kind=args.kind,
            collaborators=args.collab or [],
            identifier=args.dtag,
        )
    logger.info("Created collaborative document")
    logger.info("  Pointer:  kind %d / d:%s", result.pointer.kind, result.pointer.identifier)
    logger.info("  Target:   kind %d / d:%s", result.pointer.target_kind, result.pointer.identifier)
    logger.info("  Authors:  %d", len(result.pointer.authorized_pubkeys))
    print(result.address)


async def _fetch(args: argparse.Namespace, config: dict) -> None:
    pool, relays = _open_pool(args, config)
    logger.info("Connecting to relays…")
    async with pool:
        document = await _build_protocol(pool, None, config, relays).fetch(args.address)
    logger.info("  Kind:     %d", document.pointer.target_kind)
    logger.info("  d-tag:    %s", document.pointer.identifier)
    logger.info("  Authors:  %d", len(document.pointer.authorized_pubkeys))
    print(json.dumps(document.to_dict(), indent=2, ensure_ascii=False))


async def _update(args: argparse.Namespace, config: dict) -> None:
    signer = _signer_from(args, config)
    if signer is None:
        raise SystemExit("Error: --privkey is required for the update command (or set privkey in config)")
    template = _load_template(args.file)
    pool, relays = _open_pool(args, config)
    logger.info("Connecting to relays…")
    async with pool:
        event = await _build_protocol(pool, signer, config, relays).update(args.address, template)
    logger.info("Published update")
    logger.info("  Kind:     %s", event.get("kind"))
    logger.info("  Author:   %s…", str(event.get("pubkey", ""))[:12])
    print(event.get("id", ""))


async def _history(args: argparse.Namespace, config: dict) -> None:
    pool, relays = _open_pool(args, config)
    async with pool:
        versions = await _build_protocol(pool, None, config, relays).history(args.address)
    logger.info("Found %d version(s)", len(versions))
    print(json.dumps([version.to_dict() for version in versions], indent=2, ensure_ascii=False))


async def _list(args: argparse.Namespace, config: dict) -> None:
    signer = _signer_from(args, config)
    if args.pubkey is None and signer is None:
        raise SystemExit("Error: --pubkey or --privkey is required for the list command (or set privkey in config)")
    pool, relays = _open_pool(args, config)
    async with pool:
        protocol = _build_protocol(pool, signer, config, relays)
        pubkey = await protocol.resolver.resolve(args.pubkey) if args.pubkey else None
        documents = await protocol.list_documents(pubkey)
    logger.info("Found %d document(s)", len(documents))
    print(json.dumps([document.to_dict() for document in documents], indent=2, ensure_ascii=False))


def _common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=default_config_path(), help="config db path")
    parser.add_argument("--privkey", "--nsec", dest="privkey", help="nsec or hex private key")
    parser.add_argument("--relay", action="append", help="relay url (repeatable)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="collab-publish",
        description="Collaborative (NIP-C1) documents on Nostr",
    )
    subparsers = parser.add_subparsers(dest="command")

    init_cfg = subparsers.add_parser("init-config", help="initialize default config in the database")
    init_cfg.add_argument("--config", default=default_config_path(), help="config db path")
    init_cfg.add_argument("--force", action="store_true", help="reset an existing config")

    edit_cfg = subparsers.add_parser("edit-config", help="edit config stored in the database with $EDITOR")
    edit_cfg.add_argument("--config", default=default_config_path(), help="config db path")

    show_cfg = subparsers.add_parser("show-config", help="print the effective config")
    show_cfg.add_argument("--config", default=default_config_path(), help="config db path")

    create = subparsers.add_parser("create", help="create a new collaborative document")
    create.add_argument("-k", "--kind", type=int, default=None, help="target event kind (e.g. 30023)")
    create.add_argument("--collab", action="append", help="collaborator pubkey, npub, or NIP-05 (repeatable)")
    create.add_argument("-d", "--dtag", help="document identifier (generated when omitted)")
    create.add_argument("file", help="JSON field template ('-' for stdin)")
    _common_args(create)

    fetch = subparsers.add_parser("fetch", help="fetch the latest version of a document")
    fetch.add_argument("address", help="naddr of the collaborative pointer")
    _common_args(fetch)

    update = subparsers.add_parser("update", help="publish a new version of a document")
    update.add_argument("address", help="naddr of the collaborative pointer")
    update.add_argument("file", help="JSON field template ('-' for stdin)")
    _common_args(update)

    history = subparsers.add_parser("history", help="list every published version of a document")
    history.add_argument("address", help="naddr of the collaborative pointer")
    _common_args(history)

    listing = subparsers.add_parser("list", help="list documents you created or collaborate on")
    listing.add_argument("--pubkey", help="list for this pubkey, npub, or NIP-05 instead of your own key")
    _common_args(listing)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        raise SystemExit(1)

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )

    try:
        if args.command == "init-config":
            if config_exists(args.config) and not args.force:
                print("Config exists. Use --force to reset it.")
                return
            write_config(args.config, default_config())
            print(f"Initialized config in database at {args.config}")
            return

        if args.command == "edit-config":
            edit_config(args.config)
            return

        config = load_config(args.config)

        if args.command == "show-config":
            shown = dict(config)
            if shown.get("privkey"):
                shown["privkey"] = "********"
            print(json.dumps(shown, indent=2))
            return

        if args.command == "create" and args.kind is None:
            args.kind = int(config_number(config, "default_target_kind", DEFAULT_TARGET_KIND))

        handlers = {
            "create": _create,
            "fetch": _fetch,
            "update": _update,
            "history": _history,
            "list": _list,
        }
        asyncio.run(handlers[args.command](args, config))
    except CollabError as exc:
        raise SystemExit(f"Error: {exc}")


if __name__ == "__main__":
    main()
