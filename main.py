"""취약점 수집 파이프라인 실행기(Vulnerability ingestion pipeline runner)."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Iterable, Optional

from dotenv import load_dotenv

# Load .env file at startup
load_dotenv()

from common_lib.cache import close_redis  # noqa: E402
from common_lib.config import get_settings, load_environment  # noqa: E402
from common_lib.logger import get_logger  # noqa: E402
from refresh_scheduler.app.scheduler import RefreshScheduler  # noqa: E402
from refresh_scheduler.app.service import RefreshService, build_refresh_service  # noqa: E402
from src.core.catalog import ASSETS  # noqa: E402
from src.core.errors import CacheUnavailableError, ConfigurationError, DataValidationError  # noqa: E402

logger = get_logger(__name__)

EXIT_CACHE_UNAVAILABLE = 1
EXIT_CONFIGURATION = 2


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    """커맨드라인 인자 파싱(Parse CLI arguments)."""

    parser = argparse.ArgumentParser(description="NVD/CISA KEV 취약점 수집기(Vulnerability ingestion pipeline)")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("refresh", help="다음 배치 갱신(Refresh the next batch of assets)")

    targeted = commands.add_parser("refresh-assets", help="지정 자산 갱신(Refresh specific assets)")
    targeted.add_argument("asset_ids", nargs="+", help="자산 ID(Asset ids from the catalog)")

    loop = commands.add_parser("loop", help="주기 실행(Run refresh periodically)")
    loop.add_argument(
        "--interval",
        type=int,
        default=None,
        help="실행 간격 초(Seconds between runs; defaults to VW_REFRESH_INTERVAL_SECONDS)",
    )

    commands.add_parser("assemble", help="스냅샷 재조립 및 전파(Reassemble and cascade every window)")
    commands.add_parser("status", help="캐시 상태 출력(Print cache status)")
    commands.add_parser("assets", help="자산 카탈로그 출력(Print the asset catalog)")
    return parser.parse_args(argv)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


async def main_async(args: argparse.Namespace) -> None:
    """비동기 메인 루틴(Async main routine)."""

    if args.command == "assets":
        _emit([asset.model_dump(by_alias=True) for asset in ASSETS])
        return

    settings = get_settings()
    settings.validate_runtime(catalog_size=len(ASSETS))
    service: RefreshService = build_refresh_service(settings)

    try:
        if args.command == "refresh":
            result = await service.run_once()
            _emit(result.to_json())
        elif args.command == "refresh-assets":
            result = await service.refresh_assets(args.asset_ids)
            _emit(result.to_json())
        elif args.command == "loop":
            scheduler = RefreshScheduler(service, interval_seconds=args.interval or settings.refresh_interval_seconds)
            await scheduler.start()
        elif args.command == "assemble":
            cascaded = await service.rebuild()
            _emit({"success": True, "cascaded": cascaded})
        elif args.command == "status":
            _emit(await service.snapshots.cache_status())
    finally:
        await close_redis()


def main(argv: Optional[Iterable[str]] = None) -> None:
    """동기 진입점(Synchronous entrypoint)."""

    load_environment()
    args = parse_args(argv)
    try:
        asyncio.run(main_async(args))
    except ConfigurationError as exc:
        logger.error("%s", exc)
        sys.exit(EXIT_CONFIGURATION)
    except DataValidationError as exc:
        logger.error("%s", exc)
        sys.exit(EXIT_CONFIGURATION)
    except CacheUnavailableError as exc:
        logger.error("캐시 저장소 사용 불가(Cache store unavailable): %s", exc)
        sys.exit(EXIT_CACHE_UNAVAILABLE)
    except KeyboardInterrupt:
        logger.info("Interrupted; exiting.")


if __name__ == "__main__":
    main()
