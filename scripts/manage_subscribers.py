#!/usr/bin/env python3
"""Manage Telegram subscribers assigned to floors."""

import argparse
import asyncio

from restroom.lib.db import (
    SqliteSubscriberDirectory,
    add_subscriber,
    close_db,
    init_db,
    remove_subscriber,
)


async def list_all() -> None:
    subscribers = await SqliteSubscriberDirectory().list_subscribers()
    if not subscribers:
        print("No subscribers.")
    for s in subscribers:
        print(f"{s.id}\tfloor {s.floor}")


async def main(args: argparse.Namespace) -> None:
    await init_db()
    try:
        if args.command == "add":
            await add_subscriber(args.chat_id, args.floor)
            print(f"Assigned {args.chat_id} to floor {args.floor}")
        elif args.command == "remove":
            removed = await remove_subscriber(args.chat_id)
            print("Removed" if removed else f"No subscriber {args.chat_id}")
        else:
            await list_all()
    finally:
        await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Assign a chat to a floor")
    add.add_argument("chat_id", help="Telegram chat id")
    add.add_argument("floor", type=int, help="Floor number (1, 2, ...)")

    remove = sub.add_parser("remove", help="Remove a subscriber")
    remove.add_argument("chat_id", help="Telegram chat id")

    sub.add_parser("list", help="List subscribers")

    asyncio.run(main(parser.parse_args()))
