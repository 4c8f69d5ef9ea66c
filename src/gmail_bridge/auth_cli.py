"""Authorization entry point for Gmail Bridge.

Run once to grant access; afterwards the stored token refreshes itself.
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .auth import AuthSession, GmailBridgeAuthError
from .auth.oauth_config import OAuthConfig

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Authorize Gmail Bridge with your Google account.")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Do not open a browser or start a local listener; paste the code instead.",
    )
    args = parser.parse_args(argv)

    config = OAuthConfig()
    if args.headless:
        config.headless = True
    logger.debug(f"OAuth configuration: {config.get_environment_summary()}")

    print("Gmail Bridge - Authentication")
    print("=============================\n")
    print(f"Config directory: {config.config_dir}\n")

    session = AuthSession(config)
    if session.is_authenticated():
        print("Already authenticated!")
        print("To re-authenticate, delete the token.json file and run this command again.")
        return 0

    if config.headless:
        print("Running in headless mode (no browser available)\n")

    try:
        asyncio.run(session.authorize())
    except GmailBridgeAuthError as e:
        print(f"\nAuthentication failed: {e}", file=sys.stderr)
        return 1

    print("\nAuthentication complete! You can now use Gmail Bridge.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
