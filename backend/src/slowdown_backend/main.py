"""Entry point for the SlowDown backend server."""

import argparse
import logging
from pathlib import Path

import uvicorn
from sqlalchemy.orm import Session

from slowdown_shared.logs import setup_logging

from .app import create_app
from .config import get_settings
from .database import Base, build_engine
from .tables import UserRow

logger = logging.getLogger(__name__)


def _setup_logging(args: argparse.Namespace) -> None:
    level = getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO)
    setup_logging(args.verbose, args.log_file, default_level=level)


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the API server."""
    _setup_logging(args)
    app = create_app()
    logger.info("Serving on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


def cmd_init_db(args: argparse.Namespace) -> None:
    """Create tables and make sure allow-listed admins have the admin role."""
    _setup_logging(args)
    settings = get_settings()
    engine = build_engine(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created/verified")

    with Session(engine) as db:
        for email in settings.ADMIN_EMAILS:
            email = email.strip().lower()
            user = db.query(UserRow).filter(UserRow.email == email).first()
            if user is None:
                db.add(
                    UserRow(
                        email=email,
                        display_name="Admin",
                        role="admin",
                        daily_limit_minutes=settings.ADMIN_DAILY_LIMIT_MINUTES,
                    )
                )
                logger.info("Admin user created: %s", email)
            elif user.role != "admin":
                user.role = "admin"
                logger.info("Admin role granted: %s", email)
        db.commit()
    engine.dispose()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SlowDown backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  slowdown-backend                     Serve on 0.0.0.0:3000
  slowdown-backend serve --port 8080   Serve on a different port
  slowdown-backend init-db             Create tables and admin accounts
""",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-file", type=Path, default=None, help="Also log to this file")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=3000, help="Bind port")

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.set_defaults(func=cmd_serve)

    init_parser = subparsers.add_parser("init-db", help="Create tables and admin accounts")
    init_parser.set_defaults(func=cmd_init_db)

    args = parser.parse_args()

    if args.command is None:
        cmd_serve(args)
    else:
        args.func(args)


if __name__ == "__main__":
    main()
