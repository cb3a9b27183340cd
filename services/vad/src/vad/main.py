"""
Command-line entry point for the Dictate VAD preprocessing service.

Runs the preprocessing pipeline over a WAV file, writing the trimmed and
normalized result, or prints the detected speech segments as JSON.

Usage:
    dictate-vad input.wav output.wav
    dictate-vad input.wav --segments
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path

import structlog

from dictate_common.config import get_settings
from dictate_common.logging import configure_logging

from vad.preprocessor import AudioPreprocessor
from vad.wav_codec import decode_wav

logger = structlog.get_logger()


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="dictate-vad",
        description="Trim non-speech audio from a mono PCM WAV file with Silero VAD",
    )
    parser.add_argument("input", type=Path, help="Input WAV file")
    parser.add_argument(
        "output",
        type=Path,
        nargs="?",
        default=None,
        help="Output WAV file (required unless --segments is given)",
    )
    parser.add_argument(
        "--segments",
        action="store_true",
        default=False,
        help="Print detected speech segments as JSON instead of writing audio",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override DICTATE_LOG_LEVEL (default: %(default)s)",
    )
    args = parser.parse_args(argv)
    if not args.input.is_file():
        parser.error(f"input file not found: {args.input}")
    if args.output is None and not args.segments:
        parser.error("output is required unless --segments is given")
    return args


def main(argv: Sequence[str] | None = None) -> int:
    """Run the preprocessing pipeline over one file."""
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, json=settings.log_json)

    try:
        data = args.input.read_bytes()
    except OSError as exc:
        logger.error("vad_cli_read_failed", path=str(args.input), error=str(exc))
        return 1

    preprocessor = AudioPreprocessor(settings=settings)

    if args.segments:
        segments = preprocessor.detect_segments(data)
        sample_rate = decode_wav(data).format.sample_rate if segments else 0
        payload = [
            {
                "start": seg.start,
                "end": seg.end,
                "start_s": round(seg.start / sample_rate, 3),
                "end_s": round(seg.end / sample_rate, 3),
            }
            for seg in segments
        ]
        json.dump(payload, sys.stdout, indent=2)
        sys.stdout.write("\n")
        return 0

    output = preprocessor.preprocess(data, recording_id=args.input.name)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_bytes(output)
    logger.info(
        "vad_cli_written",
        path=str(args.output),
        input_bytes=len(data),
        output_bytes=len(output),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
