#!/usr/bin/env python3
"""
Benchmark script for mandelbrot_fast
"""

import time

from mandelbrot import write_image
from mandelbrot_fast import render_image

UPPER_LEFT = complex(-2.0, 1.25)
LOWER_RIGHT = complex(0.5, -1.25)

resolutions = [
    (640, 480),
    (1280, 720),
    (1920, 1080),
    (3840, 2160)
]

worker_counts = [1, 2, 4, 8]


def run_benchmark(resolutions, worker_counts, save_samples=False):
    """Render every resolution with every worker count, return the timings."""
    results = []
    for w, h in resolutions:
        for workers in worker_counts:
            print(f"\n{w}x{h}, {workers} workers:")

            start = time.time()
            pixels = render_image((w, h), UPPER_LEFT, LOWER_RIGHT,
                                  worker_count=workers)
            elapsed = time.time() - start

            megapixels = (w * h) / 1_000_000
            speed = megapixels / elapsed if elapsed > 0 else 0

            print(f"  Time: {elapsed:.2f}s")
            print(f"  Speed: {speed:.2f} MP/s")
            results.append((w, h, workers, elapsed))

            # Save small samples for verification
            if save_samples and w <= 1920:
                write_image(f"bench_{w}x{h}_w{workers}.png", pixels, (w, h))
    return results


if __name__ == "__main__":
    print("Mandelbrot Render Benchmark")
    print("=" * 50)

    # Warm up the JIT so the first measurement excludes compilation
    render_image((8, 8), UPPER_LEFT, LOWER_RIGHT, worker_count=1)
    run_benchmark(resolutions, worker_counts, save_samples=True)

    print("\n" + "=" * 50)
    print("Benchmark complete! Sample images saved.")
