"""
Mandelbrot command line renderer.
Writes a grayscale PNG of the requested region of the complex plane.
"""

import argparse
import os
import sys
import time

from PIL import Image

from mandelbrot_fast import render_image, rows_per_band


def parse_pair(s, separator, convert=int):
    """
    Parse ``"400x300"`` style strings into a pair, e.g.
    ``parse_pair("400x300", "x") == (400, 300)``.

    Returns None if the separator is missing or either side fails to convert.
    """
    left, sep, right = s.partition(separator)
    if not sep:
        return None
    try:
        return convert(left), convert(right)
    except ValueError:
        return None


def parse_complex(s):
    """Parse ``"-1.20,0.35"`` into a complex number, or None."""
    pair = parse_pair(s, ",", float)
    if pair is None:
        return None
    return complex(*pair)


def write_image(filename, pixels, bounds):
    """
    Encode the flat grayscale buffer ``pixels`` of ``bounds`` (width, height)
    as a PNG file.
    """
    width, height = bounds
    img = Image.frombytes("L", (width, height), bytes(pixels))
    img.save(filename, format="PNG")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="mandelbrot",
        description="Render the Mandelbrot set to a grayscale PNG.",
        epilog="Coordinates that start with '-' must follow a '--' separator, "
               "e.g. mandelbrot -- mandel.png 1000x750 -1.20,0.35 -1,0.20")
    parser.add_argument("filename", metavar="FILENAME",
                        help="Output PNG file")
    parser.add_argument("pixels", metavar="PIXELS",
                        help="Image size as WIDTHxHEIGHT")
    parser.add_argument("upper_left", metavar="UPPERLEFT",
                        help="Upper left corner as RE,IM")
    parser.add_argument("lower_right", metavar="LOWERRIGHT",
                        help="Lower right corner as RE,IM")
    parser.add_argument("-j", "--threads", type=int, default=None,
                        help="Number of worker threads (default: CPU count)")
    parser.add_argument("--legacy-partition", action="store_true",
                        help="Use height // threads + 1 rows per band")
    parser.add_argument("--progress", action="store_true",
                        help="Show a progress bar")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Do not print render statistics")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    bounds = parse_pair(args.pixels, "x")
    if bounds is None:
        parser.error("error parsing image dimensions: %r" % args.pixels)
    if bounds[0] <= 0 or bounds[1] <= 0:
        parser.error("image dimensions must be positive: %r" % args.pixels)
    upper_left = parse_complex(args.upper_left)
    if upper_left is None:
        parser.error("error parsing the upper left corner: %r" % args.upper_left)
    lower_right = parse_complex(args.lower_right)
    if lower_right is None:
        parser.error("error parsing the lower right corner: %r" % args.lower_right)

    threads = args.threads if args.threads is not None else (os.cpu_count() or 1)
    if threads < 1:
        parser.error("thread count must be at least 1: %d" % threads)

    width, height = bounds
    bands = -(-height // rows_per_band(height, threads, legacy=args.legacy_partition))

    if not args.quiet:
        print(f"{'='*60}")
        print(f"MANDELBROT RENDERER")
        print(f"{'='*60}")
        print(f"Resolution: {width}x{height}")
        print(f"Region: {upper_left} .. {lower_right}")
        print(f"Threads: {threads} ({bands} bands)")
        print(f"{'='*60}")

    start_time = time.time()
    pixels = render_image(bounds, upper_left, lower_right,
                          worker_count=threads,
                          legacy_partition=args.legacy_partition,
                          progress=args.progress)
    render_time = time.time() - start_time

    try:
        write_image(args.filename, pixels, bounds)
    except OSError as e:
        print(f"error writing PNG file: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        megapixels = (width * height) / 1e6
        speed = megapixels / render_time if render_time > 0 else 0
        print(f"\nRENDER COMPLETE!")
        print(f"Time: {render_time:.2f} seconds")
        print(f"Speed: {speed:.2f} MPix/sec")
        print(f"Saved: {args.filename}")
        print(f"{'='*60}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
