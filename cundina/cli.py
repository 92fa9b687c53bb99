"""
Command line interface.

Usage:
    cundina ranking 1 --status active
    cundina group 0x...
    cundina join <group|referrer|code> --tier 1
    cundina create --tier 2 --referrer <wallet|code>
    cundina advance 0x... [--payout-to 0x...]
    cundina cashout 0x... [--payout-to 0x...]
    cundina invite-link
    cundina watch
"""

import argparse
import asyncio
import json
from dataclasses import asdict

from loguru import logger

from cundina.config.settings import settings
from cundina.initialization.logging import setup_logging
from cundina.initialization.services import Services, build_services
from cundina.models.group import GroupStatus
from cundina.services.membership.outcomes import MembershipOutcome
from cundina.utils.exceptions import CundinaError


def _print_outcome(outcome: MembershipOutcome) -> None:
    print(json.dumps(asdict(outcome), indent=2))


async def _run(args: argparse.Namespace, services: Services) -> int:
    account = services.chain.account_address or ""

    if args.command == "ranking":
        records = await services.queries.fetch_groups(args.level, args.status)
        print(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
    elif args.command == "group":
        record = await services.queries.fetch_group_detail(args.address)
        print(record.model_dump_json(indent=2) if record else "null")
    elif args.command == "my-groups":
        print(json.dumps(await services.queries.fetch_member_groups(args.member or account)))
    elif args.command == "join":
        _print_outcome(await services.registration.join_or_create(account, args.reference, args.tier))
    elif args.command == "create":
        referrer = None
        if args.referrer:
            referrer = await services.referrals.resolve_referrer(args.referrer)
        _print_outcome(await services.registration.create_group(account, args.tier, referrer))
    elif args.command == "advance":
        _print_outcome(await services.settlement.advance(args.group, account, args.payout_to))
    elif args.command == "cashout":
        _print_outcome(await services.settlement.cashout(args.group, account, args.payout_to))
    elif args.command == "invite-link":
        print(await services.referrals.invite_link(args.wallet or account, args.entity, args.id))
    elif args.command == "watch":
        stop = asyncio.Event()
        try:
            await services.watcher.run(stop)
        except asyncio.CancelledError:
            stop.set()
    return 0


async def _main(args: argparse.Namespace) -> int:
    services = build_services(settings)
    try:
        return await _run(args, services)
    except CundinaError as e:
        logger.error(f"{e.__class__.__name__}: {e.message}")
        return 1
    finally:
        await services.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cundina", description="Cundina membership orchestrator")
    subparsers = parser.add_subparsers(dest="command")

    ranking_parser = subparsers.add_parser("ranking", help="Ranked groups at a level")
    ranking_parser.add_argument("level", type=int)
    ranking_parser.add_argument(
        "--status", default=GroupStatus.ACTIVE.value, choices=[s.value for s in GroupStatus]
    )

    group_parser = subparsers.add_parser("group", help="One group")
    group_parser.add_argument("address")

    my_groups_parser = subparsers.add_parser("my-groups", help="Groups owned by a member")
    my_groups_parser.add_argument("member", nargs="?")

    join_parser = subparsers.add_parser("join", help="Join by group address or referral")
    join_parser.add_argument("reference")
    join_parser.add_argument("--tier", type=int, default=1)

    create_parser = subparsers.add_parser("create", help="Create your own group")
    create_parser.add_argument("--tier", type=int, default=1)
    create_parser.add_argument("--referrer")

    for name in ("advance", "cashout"):
        settle_parser = subparsers.add_parser(name, help=f"{name.title()} a completed group")
        settle_parser.add_argument("group")
        settle_parser.add_argument("--payout-to")

    invite_parser = subparsers.add_parser("invite-link", help="Referral invite link")
    invite_parser.add_argument("--wallet")
    invite_parser.add_argument("--entity", default="block")
    invite_parser.add_argument("--id")

    subparsers.add_parser("watch", help="Invalidate rankings on Registry activity")
    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return

    setup_logging(settings.log_level, settings.log_file)
    raise SystemExit(asyncio.run(_main(args)))


if __name__ == "__main__":
    main()
