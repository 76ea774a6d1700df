from __future__ import annotations

import argparse
import os
from typing import Any

from rich.console import Console

from .audio import SAMPLE_RATE, peak
from .config import WeatherParams, load_params, merge_params
from .graph import DEFAULT_BLOCK_SIZE
from .logging_utils import configure_logging, get_logger, log_exception
from .render import play_live, render_offline
from .spinner import Spinner, render_error

_LOGGER = get_logger("cli")
_CONSOLE = Console()


def _add_engine_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--params", type=str, default=None, help="JSON parameter file.")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--sample-rate", type=int, default=SAMPLE_RATE)
    parser.add_argument("--block-size", type=int, default=DEFAULT_BLOCK_SIZE)
    parser.add_argument("--no-rain", action="store_true", help="Disable the rain generator.")
    parser.add_argument("--no-thunder", action="store_true", help="Disable the thunder generator.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stormscape")
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Render weather audio to a WAV file.")
    render.add_argument("--duration", type=float, default=30.0)
    render.add_argument("--output", type=str, default="storm.wav")
    render.add_argument("--float", action="store_true", help="Write 32-bit float instead of 16-bit PCM.")
    _add_engine_args(render)

    play = sub.add_parser("play", help="Stream weather audio to the default device.")
    play.add_argument("--duration", type=float, default=None)
    _add_engine_args(play)

    sub.add_parser("defaults", help="Print the default parameter set as JSON.")
    return parser


def _resolve_params(args: argparse.Namespace) -> WeatherParams:
    params = load_params(args.params) if args.params else WeatherParams()
    changes: dict[str, Any] = {}
    if args.no_rain:
        changes["rain"] = {"on": False}
    if args.no_thunder:
        changes["thunder"] = {"on": False}
    return merge_params(params, changes) if changes else params


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)

        if args.command == "render":
            params = _resolve_params(args)
            with Spinner(f"Rendering {args.duration:.1f}s of weather"):
                audio = render_offline(
                    params,
                    duration=args.duration,
                    sample_rate=args.sample_rate,
                    block_size=args.block_size,
                    seed=args.seed,
                )
            path = audio.save(args.output, subtype="FLOAT" if args.float else "PCM_16")
            _CONSOLE.print(
                f"Wrote {audio.duration:.2f}s to {path} (sr={audio.sample_rate}, peak={peak(audio.samples):.3f})"
            )
            return 0

        if args.command == "play":
            params = _resolve_params(args)
            play_live(
                params,
                duration=args.duration,
                sample_rate=args.sample_rate,
                block_size=args.block_size,
                seed=args.seed,
            )
            return 0

        if args.command == "defaults":
            _CONSOLE.print_json(WeatherParams().model_dump_json())
            return 0

        parser.print_help()
        return 1
    except KeyboardInterrupt:
        _LOGGER.info("Interrupted")
        return 130
    except Exception as exc:
        debug = bool(os.environ.get("STORMSCAPE_DEBUG"))
        _LOGGER.warning("stormscape CLI failed: %s", exc, exc_info=debug)
        log_exception("stormscape CLI", exc)
        render_error("stormscape CLI", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
