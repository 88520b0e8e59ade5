"""Command line entry point: create HiPS surveys from images."""

from __future__ import annotations

import argparse
import math
import sys

from hipster.image import ImageError
from hipster.survey import Format, Frame, SurveyOptions, create_image_survey

__all__ = ["parse_format", "parse_frame", "parse_args", "main"]

_VERSION = "hipster 0.1"
_DD2R = math.pi / 180


def parse_format(text: str) -> Format:
    """Return the formats named anywhere in ``text``."""
    fmt = Format(0)
    if "png" in text:
        fmt |= Format.PNG
    if "jpeg" in text:
        fmt |= Format.JPEG
    if "webp" in text:
        fmt |= Format.WEBP
    if not fmt:
        raise ValueError(f"Unknown format: '{text}'")
    return fmt


def parse_frame(text: str) -> Frame:
    """Return the frame named in ``text``; the last match listed wins."""
    frame = Frame.NONE
    for candidate in (Frame.EQUATORIAL, Frame.GALACTIC, Frame.ECLIPTIC):
        if candidate.name.lower() in text:
            frame = candidate
    if frame is Frame.NONE:
        raise ValueError(f"Unknown frame: '{text}'")
    return frame


def _as_argument_type(func):
    def convert(text):
        try:
            return func(text)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from exc
    convert.__name__ = func.__name__
    return convert


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hipster", description="Create hips surveys from images")
    parser.add_argument("--version", action="version", version=_VERSION)
    parser.add_argument("inputs", nargs="*", metavar="INPUTS")
    parser.add_argument("-o", "--output", metavar="DIR", help="Output to DIR")
    parser.add_argument("-f", "--format", metavar="FORMAT", action="append",
                        type=_as_argument_type(parse_format),
                        help="png|jpeg|webp")
    parser.add_argument("--frame", metavar="FRAME",
                        type=_as_argument_type(parse_frame),
                        default=Frame.NONE,
                        help="equatorial|galactic|ecliptic")
    parser.add_argument("--pngquant", action="store_true",
                        help="use pngquant to compress the images")
    parser.add_argument("-p", "--propertie", metavar="LINE", action="append",
                        default=[], dest="props",
                        help="Add a propertie to the survey")
    parser.add_argument("--theta", metavar="DEG", type=int, default=0,
                        help="Theta angle of center of src image")
    parser.add_argument("--phi", metavar="DEG", type=int, default=0,
                        help="Phi angle of center of src image")
    parser.add_argument("--bump-to-normal", action="store_true",
                        help="Convert bump texture to normal map")
    return parser


def _default_format(path: str) -> Format:
    _, dot, ext = path.rpartition(".")
    ext = ext if dot else ""
    if ext == "png":
        return Format.PNG
    if ext == "webp":
        return Format.WEBP
    return Format.JPEG


def parse_args(argv=None) -> SurveyOptions:
    """Parse command line arguments into survey options."""
    parser = _build_parser()
    ns = parser.parse_args(argv)
    if len(ns.inputs) > 2:
        parser.error("Too many inputs")
    if not ns.inputs:
        parser.error("Input missing")
    if not ns.output:
        parser.error("Output missing")

    fmt = Format(0)
    for value in ns.format or ():
        fmt |= value
    if not fmt:
        fmt = _default_format(ns.inputs[0])

    return SurveyOptions(
        inputs=list(ns.inputs),
        output=ns.output,
        format=fmt,
        frame=ns.frame,
        pngquant=ns.pngquant,
        theta=ns.theta * _DD2R,
        phi=ns.phi * _DD2R,
        bump_to_normal=ns.bump_to_normal,
        props=list(ns.props),
    )


def main(argv=None) -> int:
    """Run the command; returns the process exit status."""
    options = parse_args(argv)
    try:
        create_image_survey(options)
    except ImageError as exc:
        print(f"Cannot read source: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())