import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from dotenv import load_dotenv
from pathlib import Path
from amo_client import AmoAPIError, AmoClient
from amo_entities import ENTITY_KINDS
from settings import Settings


def _load_env_files() -> None:
  """Load environment variables from .env in project root and/or CWD."""
  project_env = Path(__file__).resolve().parent / ".env"
  cwd_env = Path.cwd() / ".env"
  for env_path in (project_env, cwd_env):
    if env_path.exists():
      load_dotenv(dotenv_path=str(env_path), override=False)


def _parse_args(argv: Optional[list[str]]) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description="Fetch one amoCRM record and print it as JSON.")
  parser.add_argument("kind", choices=sorted(ENTITY_KINDS))
  parser.add_argument("id", type=int)
  parser.add_argument("--subdomain", default=None, help="account subdomain (default: AMOCRM_SUBDOMAIN)")
  parser.add_argument("-v", "--verbose", action="store_true")
  return parser.parse_args(argv)


async def _async_main(args: argparse.Namespace) -> int:
  settings = Settings()
  subdomain = args.subdomain or settings.AMOCRM_SUBDOMAIN
  if not settings.AMOCRM_ACCESS_TOKEN or not subdomain:
    print(
      "Missing AMOCRM_ACCESS_TOKEN or AMOCRM_SUBDOMAIN in environment. Set them in your .env file.",
      file=sys.stderr,
    )
    return 2

  async with AmoClient(
    access_tokens={subdomain: settings.AMOCRM_ACCESS_TOKEN},
    domain=settings.AMOCRM_DOMAIN,
    timeout_seconds=settings.AMOCRM_TIMEOUT_SECONDS,
    max_retries=settings.AMOCRM_MAX_RETRIES,
  ) as amo_client:
    record = ENTITY_KINDS[args.kind](subdomain=subdomain, client=amo_client)
    try:
      await record.fill_by_id(args.id)
    except AmoAPIError as err:
      print(err, file=sys.stderr)
      return 1
    print(json.dumps(record.model_dump(), ensure_ascii=False, indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
  """Entry point for CLI usage."""
  _load_env_files()
  args = _parse_args(argv)
  logging.basicConfig(
    level=logging.DEBUG if args.verbose else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
  )

  try:
    return asyncio.run(_async_main(args))
  except KeyboardInterrupt:
    return 130


if __name__ == "__main__":
  raise SystemExit(main())
