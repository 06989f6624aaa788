"""Command-line entry point for the serial number scanner.

Runs headless: either lists the active deals of the CRM, or opens the
configured camera and scans until the requested number of serials has been
collected, printing them as JSON.
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from .config.settings import Config, load_config
from .core.exceptions import CrmError
from .core.logging_config import CorrelationContext, configure_logging
from .core import events
from .core.events import ScanEvent
from .services.camera_service import CameraService
from .services.crm_client import CrmClient
from .services.geolocation_service import GeolocationResolver
from .services.preprocessing_service import ImageEnhancer
from .services.recognition_service import TesseractRecognizer
from .services.scan_controller import ScanLoopController

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="serial-scanner",
                                     description="Scan 10-digit equipment serial numbers from a camera.")
    parser.add_argument("--config", default="config.json", help="Path to config.json")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--list-deals", action="store_true", help="List active deals and exit")
    parser.add_argument("--count", type=int, default=1, help="Number of distinct serials to collect")
    parser.add_argument("--timeout", type=float, default=60.0, help="Give up after this many seconds")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def build_controller(config: Config) -> ScanLoopController:
    return ScanLoopController(
        camera=CameraService.from_config(config),
        recognizer=TesseractRecognizer.from_config(config),
        enhancer=ImageEnhancer.from_config(config),
        geolocation=GeolocationResolver.from_config(config),
        config=config,
    )


def list_deals(config: Config) -> int:
    client = CrmClient.from_config(config)
    with CorrelationContext():
        try:
            deals = client.list_active_deals()
        except CrmError as e:
            logger.error(f"Failed to load deals: {e}")
            return 1
        finally:
            client.close()

    print(json.dumps([
        {"id": d.id, "name": d.name, "stage": d.stage, "street": d.street,
         "models": [m.model_value for m in d.models]}
        for d in deals
    ], indent=2))
    return 0


async def scan(controller: ScanLoopController, count: int, timeout: float) -> List[dict]:
    """Collect up to ``count`` serials, restarting the loop after each match."""
    matched = asyncio.Event()
    failed = asyncio.Event()

    def on_event(event: ScanEvent) -> None:
        if event.kind == events.MATCHED:
            matched.set()
        elif event.kind == events.ERROR and not controller.session.is_scanning:
            failed.set()
        elif event.kind == events.STATUS:
            logger.info(event.message)

    controller.add_listener(on_event)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    try:
        while len(controller.serials) < count:
            matched.clear()
            if not await controller.start():
                break
            waiters = [asyncio.create_task(matched.wait()), asyncio.create_task(failed.wait())]
            remaining = max(0.0, deadline - loop.time())
            done, pending = await asyncio.wait(waiters, timeout=remaining,
                                               return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            if not done or failed.is_set():
                break
    finally:
        controller.remove_listener(on_event)
        await controller.shutdown()

    return [entry.to_dict() for entry in controller.serials]


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config, env_file=args.env_file)
    if args.debug:
        config.debug = True
        config.log_level = "DEBUG"

    configure_logging(
        log_level=config.log_level,
        log_dir=config.log_dir,
        enable_file_logging=config.debug,
        structured_logging=config.structured_logging,
    )

    if args.list_deals:
        return list_deals(config)

    controller = build_controller(config)
    try:
        serials = asyncio.run(scan(controller, max(1, args.count), args.timeout))
    except KeyboardInterrupt:
        logger.info("Scan interrupted")
        return 130

    print(json.dumps(serials, indent=2))
    return 0 if serials else 1


if __name__ == "__main__":
    sys.exit(main())
