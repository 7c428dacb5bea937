#!/usr/bin/env python
"""
Run one ranking task against a real browser and print the result.

Usage:
    python scripts/run_ranking_task.py task.yaml
    python scripts/run_ranking_task.py task.json --headful --seed 7
    python scripts/run_ranking_task.py task.yaml --output result.json

The task file holds one RankingTask in camelCase (YAML or JSON, both parse
with yaml.safe_load).
"""

import argparse
import asyncio
import json
import sys
import time
from pathlib import Path

import yaml

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from playwright.async_api import async_playwright

from apps.services.ranking_bot import RankingBot
from libs.core.config import get_settings
from libs.core.logging_config import (
    attach_run_log,
    detach_run_log,
    get_logger,
    log_run_end,
    log_run_start,
    setup_logging,
)
from libs.core.models import RankingTask

logger = get_logger("rankbot.runner")


def load_task(path: Path) -> RankingTask:
    with path.open("r", encoding="utf-8") as f:
        payload = yaml.safe_load(f)
    return RankingTask.model_validate(payload)


async def run(task: RankingTask, run_id: str, headless: bool, seed, user_data_dir) -> dict:
    settings = get_settings()
    viewport = {"width": settings.site.viewport_width, "height": settings.site.viewport_height}

    async with async_playwright() as p:
        if user_data_dir:
            # Persistent profile keeps the login state for non-anonymous tasks
            context = await p.chromium.launch_persistent_context(
                str(user_data_dir), headless=headless, viewport=viewport, locale=task.location
            )
            browser = None
        else:
            browser = await p.chromium.launch(headless=headless)
            context = await browser.new_context(viewport=viewport, locale=task.location)
        try:
            bot = RankingBot(context, settings=settings, seed=seed)
            result = await bot.handle(task, run_id=run_id)
        finally:
            await context.close()
            if browser is not None:
                await browser.close()
    return result.to_wire()


def main():
    parser = argparse.ArgumentParser(description="Run a marketplace ranking task")
    parser.add_argument("task_file", type=Path, help="YAML or JSON task file")
    parser.add_argument(
        "--headful",
        action="store_true",
        help="Show the browser window",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for random-visit sampling and human activity",
    )
    parser.add_argument(
        "--user-data-dir",
        type=Path,
        default=None,
        help="Chromium profile directory (for logged-in runs)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Write the result JSON here instead of stdout",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override RANKBOT_LOG_LEVEL",
    )
    args = parser.parse_args()

    setup_logging(level=args.log_level or get_settings().log_level)

    task = load_task(args.task_file)
    criteria = task.product_action.search_criteria
    run_id = args.task_file.stem
    log_run_start(logger, run_id, criteria.keyword, task.product_action.product_id, task.location)

    run_log = attach_run_log(run_id)
    started = time.monotonic()
    try:
        payload = asyncio.run(run(task, run_id, not args.headful, args.seed, args.user_data_dir))
    finally:
        detach_run_log(run_log)
    log_run_end(logger, run_id, payload.get("error") is None, (time.monotonic() - started) * 1000)

    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(text + "\n", encoding="utf-8")
        print(f"Result saved: {args.output}")
    else:
        print(text)

    return 0 if payload.get("error") is None else 1


if __name__ == "__main__":
    sys.exit(main())
