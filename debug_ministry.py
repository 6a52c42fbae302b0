#!/usr/bin/env python3
"""
Ministry Sync Debug Script

Shows step by step how the client finds the login endpoint, logs in and
reads the class list, without installing the integration in Home Assistant.

Usage:
    python3 debug_ministry.py [--probe-only]

Credentials are read from a .env file or prompted for.

Create a .env file with:
    MINISTRY_USERNAME=your_username
    MINISTRY_PASSWORD=your_password
    MINISTRY_BASE_URL=https://optional.server.override/Service.svc
"""

import argparse
import asyncio
import getpass
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Set up detailed logging
logging.basicConfig(
	level=logging.DEBUG,
	format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Add the integration directory to the Python path
sys.path.insert(0, str(Path(__file__).parent / "custom_components" / "ministry_sync"))

from ministry.client import MinistryClient  # noqa: E402
from ministry.exceptions import (  # noqa: E402
	MinistryAuthError,
	MinistryConnectionError,
	MinistryDiscoveryError,
	MinistryRemoteError,
)


async def debug_flow(username: str, password: str, base_url: str, probe_only: bool) -> bool:
	"""Run discovery, login and a class list read."""
	print("🔍 Debugging Ministry Sync")
	print("=" * 50)

	async with MinistryClient() as client:
		print(f"   Base URL: {client.registry.target_base_url(base_url)}")

		print("\n1️⃣ Probing login endpoint with sentinel credentials...")
		try:
			probe = await client.discover_login_path(base_url)
		except MinistryConnectionError as e:
			print(f"   ❌ Connection failed: {e}")
			return False
		print(f"   {'✅' if probe.found else '❌'} {probe.message}")
		if not probe.found or probe_only:
			return probe.found

		print("\n2️⃣ Logging in...")
		try:
			session = await client.login(username, password, base_url=base_url)
		except MinistryAuthError as e:
			print(f"   ❌ Wrong username or password: {e}")
			return False
		except MinistryDiscoveryError as e:
			print(f"   ❌ {e}")
			return False
		except MinistryConnectionError as e:
			print(f"   ❌ Connection failed: {e}")
			return False
		print(f"   ✅ {session}")

		print("\n3️⃣ Reading class list...")
		try:
			classes = await client.get_classes()
		except (MinistryRemoteError, MinistryConnectionError) as e:
			print(f"   ❌ {e}")
			return False
		print(json.dumps(classes, indent=2, ensure_ascii=False)[:2000])
		return True


def main() -> None:
	parser = argparse.ArgumentParser(description="Debug the ministry registry connection")
	parser.add_argument("--probe-only", action="store_true", help="Only probe for the login endpoint")
	args = parser.parse_args()

	username = os.getenv("MINISTRY_USERNAME") or input("Username: ")
	password = os.getenv("MINISTRY_PASSWORD") or getpass.getpass("Password: ")
	base_url = os.getenv("MINISTRY_BASE_URL", "")

	ok = asyncio.run(debug_flow(username, password, base_url, args.probe_only))
	sys.exit(0 if ok else 1)


if __name__ == "__main__":
	main()
