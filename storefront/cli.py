"""
Administrative commands.

Usage:
  storefront init-db
  storefront create-user --username alice --password secret --role customer --name Alice
  storefront seed-menu
"""
import argparse
import logging
from decimal import Decimal

from . import crud, schemas
from .db import Base, SessionLocal, engine

logger = logging.getLogger(__name__)

SAMPLE_MENU = [
    {"name": "美式咖啡", "price": Decimal("60"), "category": "咖啡", "description": "雙份濃縮加熱水"},
    {"name": "拿鐵", "price": Decimal("80"), "category": "咖啡", "description": "濃縮咖啡與蒸奶"},
    {"name": "焦糖瑪奇朵", "price": Decimal("95"), "category": "咖啡", "description": "香草、蒸奶與焦糖醬"},
    {"name": "伯爵紅茶", "price": Decimal("55"), "category": "茶飲"},
    {"name": "抹茶拿鐵", "price": Decimal("90"), "category": "茶飲"},
    {"name": "火腿起司三明治", "price": Decimal("75"), "category": "輕食"},
    {"name": "可頌", "price": Decimal("50"), "category": "輕食"},
]


def init_db(session_factory=SessionLocal, bind=engine):
    Base.metadata.create_all(bind=bind)
    db = session_factory()
    try:
        crud.ensure_defaults(db)
    finally:
        db.close()


def create_user(args, session_factory=SessionLocal):
    user_in = schemas.UserCreate(
        username=args.username,
        password=args.password,
        role=args.role,
        name=args.name,
        email=args.email,
    )
    db = session_factory()
    try:
        user = crud.create_user(db, user_in)
        logger.info("created %s account %s (id %s)", user.role, user.username, user.id)
        return user.id
    finally:
        db.close()


def seed_menu(session_factory=SessionLocal) -> int:
    db = session_factory()
    try:
        if crud.list_menu_items(db):
            logger.info("menu already has items; nothing seeded")
            return 0
        for item in SAMPLE_MENU:
            crud.create_menu_item(db, schemas.MenuItemCreate(**item))
        return len(SAMPLE_MENU)
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and default settings/pickup options")

    user = sub.add_parser("create-user", help="Create a customer, staff or manager account")
    user.add_argument("--username", required=True)
    user.add_argument("--password", required=True)
    user.add_argument("--role", required=True, choices=[r.value for r in schemas.Role])
    user.add_argument("--name", required=True)
    user.add_argument("--email", default=None)

    sub.add_parser("seed-menu", help="Insert sample menu items into an empty menu")
    return parser


def main(argv=None, session_factory=SessionLocal, bind=engine):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    args = build_parser().parse_args(argv)
    if args.command == "init-db":
        init_db(session_factory, bind)
    elif args.command == "create-user":
        create_user(args, session_factory)
    elif args.command == "seed-menu":
        count = seed_menu(session_factory)
        logger.info("seeded %d menu items", count)


if __name__ == "__main__":
    main()
