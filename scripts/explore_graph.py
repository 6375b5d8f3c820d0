#!/usr/bin/env python3
"""CLI that explores a keyword against the bookmarks API and prints the settled layout."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from newsgraph.api.client import BookmarksAPIClient
from newsgraph.config import AppConfig, load_config
from newsgraph.errors import ConfigError, NewsGraphError
from newsgraph.exploration.controller import ExplorationController, ExplorationOutcome
from newsgraph.graph.model import GraphVariant
from newsgraph.render.loop import RecordingScene, RenderLoop
from newsgraph.timeline.view import build_timeline


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments for the exploration utility.

    Returns:
        argparse.Namespace: Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "keyword",
        nargs="?",
        default=None,
        help="Keyword to explore (default: the top ranked keyword)",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--base-url", default=None, help="Override the API base URL")
    parser.add_argument(
        "--view",
        choices=[variant.value for variant in GraphVariant],
        default=None,
        help="Graph endpoint to use (default: exploration.view from config)",
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        default=2000,
        help="Upper bound on simulation frames before printing (default: 2000)",
    )
    parser.add_argument(
        "--timeline",
        action="store_true",
        help="Print the timeline layout of recently saved articles instead",
    )
    return parser.parse_args(argv)


def _resolve_config(args: argparse.Namespace) -> AppConfig:
    config = load_config(args.config)
    if args.base_url:
        api = config.api.model_copy(update={"base_url": args.base_url.rstrip("/")})
        config = config.model_copy(update={"api": api})
    return config


async def _explore(args: argparse.Namespace, config: AppConfig, client: BookmarksAPIClient) -> Dict[str, Any]:
    scene = RecordingScene()
    render_loop = RenderLoop(scene)
    controller = ExplorationController(client, config, view=args.view, render_loop=render_loop)
    if args.keyword:
        outcome = await controller.explore(args.keyword)
    else:
        outcome = await controller.mount()
    if outcome is not ExplorationOutcome.LOADED:
        raise RuntimeError(controller.status_text or f"exploration {outcome.value}")
    frames = render_loop.run(args.max_frames)
    if scene.last_frame is None:
        render_loop.frame()
    engine = controller.engine
    assert engine is not None and scene.last_frame is not None
    return {
        "keyword": controller.active_keyword,
        "view": controller.view.value,
        "status": controller.status_text,
        "frames": frames,
        "converged": engine.converged,
        "nodes": {node_id: {"x": x, "y": y} for node_id, (x, y) in scene.last_frame.nodes.items()},
    }


async def _timeline(config: AppConfig, client: BookmarksAPIClient) -> Dict[str, Any]:
    layout = build_timeline(await client.fetch_timeline(), config.timeline)
    return {
        "width": layout.width,
        "empty": layout.empty_message,
        "ticks": [tick.label for tick in layout.ticks],
        "articles": [
            {"id": point.article_id, "x": point.x, "y": point.y, "url": point.url} for point in layout.points
        ],
    }


async def _run(args: argparse.Namespace, config: AppConfig) -> Dict[str, Any]:
    async with BookmarksAPIClient(config.api) as client:
        if args.timeline:
            return await _timeline(config, client)
        return await _explore(args, config, client)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the exploration CLI.

    Returns:
        int: Exit status code where ``0`` indicates success.
    """
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    args = parse_args(argv)

    try:
        config = _resolve_config(args)
    except ConfigError as exc:
        print("Configuration error:", exc, file=sys.stderr)
        return 2

    try:
        result = asyncio.run(_run(args, config))
    except (NewsGraphError, RuntimeError) as exc:
        tag = getattr(exc, "tag", None) or str(exc)
        print("Exploration failed:", tag, file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
