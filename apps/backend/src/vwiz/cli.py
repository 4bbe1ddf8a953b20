"""Video Wizard render command-line interface.

Usage:
    vwiz-cli serve
    vwiz-cli render <video-url> --subtitles subs.srt [--template viral] [--server URL]
    vwiz-cli status <job-id> [--server URL]
    vwiz-cli cancel <job-id> [--server URL]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from vwiz.compositions import CaptionTemplate
from vwiz.errors import RenderClientError
from vwiz.subtitles import SubtitleParseError, load_subtitles


def _client(args: argparse.Namespace):
    from vwiz.client import RenderClient

    return RenderClient(base_url=args.server)


async def cmd_render(args: argparse.Namespace) -> None:
    """Submit a captioned render and wait for the video."""
    subtitles_path = Path(args.subtitles)
    if not subtitles_path.exists():
        print(f"Error: subtitle file not found: {subtitles_path}", file=sys.stderr)
        sys.exit(1)

    try:
        subtitles = load_subtitles(subtitles_path)
    except SubtitleParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    client = _client(args)
    print(f"Rendering {args.video_url}")
    print(f"  Server: {client.base_url}")
    print(f"  Subtitles: {len(subtitles)}")
    print(f"  Template: {args.template}")

    if not await client.health_check():
        print(f"Error: cannot reach render server: {client.base_url}", file=sys.stderr)
        sys.exit(1)

    def progress_cb(progress: float, status: str) -> None:
        bar_width = 30
        filled = int(bar_width * progress)
        bar = "=" * filled + "-" * (bar_width - filled)
        print(f"\r  [{bar}] {progress*100:.0f}% {status}", end="", flush=True)

    try:
        result = await client.render_with_subtitles(
            video_url=args.video_url,
            subtitles=subtitles,
            template=args.template,
            background_color=args.background,
            progress_callback=progress_cb,
        )
    except RenderClientError as e:
        print(f"\nRender failed: {e}", file=sys.stderr)
        sys.exit(1)
    print()  # newline after progress bar

    print(f"\nDone: {result.video_url}")


async def cmd_status(args: argparse.Namespace) -> None:
    try:
        job = await _client(args).get_render(args.job_id)
    except RenderClientError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(job, indent=2, ensure_ascii=False))


async def cmd_cancel(args: argparse.Namespace) -> None:
    try:
        await _client(args).cancel_render(args.job_id)
    except RenderClientError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Cancelled: {args.job_id}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="vwiz-cli",
        description="Video Wizard render server CLI",
    )
    subparsers = parser.add_subparsers(dest="command")

    # serve
    subparsers.add_parser("serve", help="Run the render server")

    # render
    p_render = subparsers.add_parser("render", help="Render a video with captions")
    p_render.add_argument("video_url", type=str, help="Source video URL")
    p_render.add_argument("--subtitles", type=str, required=True, help="SRT file or JSON list of {start, end, text}")
    p_render.add_argument(
        "--template",
        choices=[t.value for t in CaptionTemplate],
        default=CaptionTemplate.VIRAL.value,
        help="Caption template (default: viral)",
    )
    p_render.add_argument("--background", type=str, default="#000000", help="Background color (default: #000000)")
    p_render.add_argument("--server", type=str, help="Render server URL (default: RENDER_SERVER_URL or http://localhost:3001)")

    # status
    p_status = subparsers.add_parser("status", help="Show a render job")
    p_status.add_argument("job_id", type=str, help="Job ID")
    p_status.add_argument("--server", type=str, help="Render server URL")

    # cancel
    p_cancel = subparsers.add_parser("cancel", help="Cancel a render job")
    p_cancel.add_argument("job_id", type=str, help="Job ID")
    p_cancel.add_argument("--server", type=str, help="Render server URL")

    args = parser.parse_args()

    if args.command == "serve":
        from vwiz.main import main as serve

        serve()
    elif args.command == "render":
        asyncio.run(cmd_render(args))
    elif args.command == "status":
        asyncio.run(cmd_status(args))
    elif args.command == "cancel":
        asyncio.run(cmd_cancel(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
