#!/usr/bin/env python3
"""
Migraciones de la tabla de facturas con Alembic.

Uso:
    python migrate.py upgrade             # Aplicar migraciones pendientes
    python migrate.py downgrade [-n 1]    # Revertir N migraciones
    python migrate.py revision "mensaje"  # Autogenerar una migración nueva
    python migrate.py history | current
"""
import argparse
import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

from app.core.config import settings

ROOT_DIR = Path(__file__).resolve().parent

logger = logging.getLogger("migrate")


def get_alembic_config() -> Config:
    alembic_cfg = Config(str(ROOT_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(ROOT_DIR / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.async_database_url.replace("%", "%%"))
    return alembic_cfg


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Migraciones de base de datos")
    sub = parser.add_subparsers(dest="action", required=True)

    sub.add_parser("upgrade", help="Aplicar migraciones hasta head")

    down = sub.add_parser("downgrade", help="Revertir migraciones")
    down.add_argument("-n", "--steps", type=int, default=1)

    rev = sub.add_parser("revision", help="Autogenerar migración")
    rev.add_argument("message")

    sub.add_parser("history", help="Ver historial")
    sub.add_parser("current", help="Ver revisión actual")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    alembic_cfg = get_alembic_config()

    if args.action == "upgrade":
        command.upgrade(alembic_cfg, "head")
        logger.info("Migraciones ejecutadas exitosamente")
    elif args.action == "downgrade":
        command.downgrade(alembic_cfg, f"-{args.steps}")
        logger.info(f"Rollback de {args.steps} migración(es) ejecutado")
    elif args.action == "revision":
        command.revision(alembic_cfg, autogenerate=True, message=args.message)
        logger.info(f"Migración creada: {args.message}")
    elif args.action == "history":
        command.history(alembic_cfg)
    elif args.action == "current":
        command.current(alembic_cfg)
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")
    sys.exit(main())
