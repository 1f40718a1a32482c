"""Command-line entry point.

Loads a blurred image and a kernel, pushes them onto an `ImageStack`,
runs the requested deconvolution and saves the top of the stack.

Exit status is 0 on success, 2 for a malformed invocation (bad arguments,
unknown method, unreadable or unsupported input files) and 1 when the
inputs violate a precondition, the FFT backend is missing or the output
cannot be written.
"""

from __future__ import annotations

import argparse
import logging
import sys

from deblurlib.deconvolution import METHODS, ImageStack, deconvolve
from deblurlib.errors import BuildConfigurationError, PreconditionError, UsageError
from deblurlib.utils.io import load_image, save_image


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="deblurlib",
        description=(
            "Deconvolve a blurred image with a known kernel. Supported methods "
            "are 'cho' (Cho and Lee, 2009) and 'shan' (Shan et al., 2008)."
        ),
    )
    ap.add_argument("blurred", help="Blurred image (.npy or .tmp)")
    ap.add_argument("kernel", help="Blur kernel with odd width and height (.npy or .tmp)")
    ap.add_argument(
        "--deconvolution",
        required=True,
        metavar="METHOD",
        help=f"Deconvolution method: {', '.join(sorted(METHODS))}",
    )
    ap.add_argument("-o", "--output", required=True, help="Output image path (.npy or .tmp)")
    ap.add_argument(
        "--checkpoint-dir",
        default=".",
        help="Directory for padded.tmp / outputNN.tmp debug snapshots (default: current directory)",
    )
    ap.add_argument(
        "--checkpoints",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Write debug snapshots",
    )
    ap.add_argument("--device", default="cpu", help="PyTorch device (cpu, cuda, ...)")
    ap.add_argument("-v", "--verbose", action="store_true", default=False)
    return ap


def main(argv: list[str] | None = None) -> int:
    ap = build_parser()
    try:
        args = ap.parse_args(argv)
    except SystemExit as e:
        return int(e.code or 0)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    stack = ImageStack()
    try:
        stack.push(load_image(args.blurred))
        stack.push(load_image(args.kernel))
    except (OSError, ValueError) as e:
        print(f"deblurlib: usage error: {e}", file=sys.stderr)
        return 2

    try:
        deconvolve(
            stack,
            args.deconvolution,
            checkpoint_dir=args.checkpoint_dir if args.checkpoints else None,
            device=args.device,
            verbose=args.verbose,
        )
    except UsageError as e:
        print(f"deblurlib: usage error: {e}", file=sys.stderr)
        return 2
    except (PreconditionError, BuildConfigurationError) as e:
        print(f"deblurlib: error: {e}", file=sys.stderr)
        return 1

    try:
        save_image(stack.peek(), args.output)
    except (OSError, ValueError) as e:
        print(f"deblurlib: error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
