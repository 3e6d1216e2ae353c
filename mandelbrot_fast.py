"""
Fast Mandelbrot Set Renderer using Numba and NumPy
Renders the escape-time image into a flat grayscale buffer, split into
horizontal bands that are rendered concurrently.
License: MIT
"""

import os
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor, as_completed

import numpy as np
from numba import jit
from tqdm import tqdm


ITERATION_LIMIT = 255

Band = namedtuple("Band", ["index", "start", "stop", "top", "height",
                           "upper_left", "lower_right"])


@jit(nopython=True, nogil=True, cache=True)
def _pixel_to_point(width, height, col, row, ul_re, ul_im, lr_re, lr_im):
    span_re = lr_re - ul_re
    span_im = ul_im - lr_im
    return (ul_re + col * span_re / width,
            ul_im - row * span_im / height)


@jit(nopython=True, nogil=True, cache=True)
def _escape_count(cr, ci, limit):
    """
    Iteration at which z leaves the radius-2 disk, 0 if it never does.
    """
    zr, zi = cr, ci
    for i in range(1, limit):
        zr2 = zr * zr
        zi2 = zi * zi
        # Strict: |z|^2 == 4 has not escaped
        if zr2 + zi2 > 4.0:
            return i
        zi = 2.0 * zr * zi + ci
        zr = zr2 - zi2 + cr
    return 0


@jit(nopython=True, nogil=True, cache=True)
def _render_kernel(pixels, width, height, ul_re, ul_im, lr_re, lr_im, limit):
    for row in range(height):
        for col in range(width):
            cr, ci = _pixel_to_point(width, height, col, row,
                                     ul_re, ul_im, lr_re, lr_im)
            time = _escape_count(cr, ci, limit)
            if time == 0:
                time = limit
            pixels[row * width + col] = 255 - time


def pixel_to_point(bounds, pixel, upper_left, lower_right):
    """
    Map a pixel position onto the complex plane.

    Parameters:
    -----------
    bounds : (int, int)
        Image width and height in pixels
    pixel : (int, int)
        Column and row. Row 0 is the top of the image, and ``pixel`` may sit
        on the far edge (x == width, y == height).
    upper_left, lower_right : complex
        Corners of the plane rectangle covered by the image

    Returns:
    --------
    complex
    """
    re, im = _pixel_to_point(bounds[0], bounds[1], pixel[0], pixel[1],
                             float(upper_left.real), float(upper_left.imag),
                             float(lower_right.real), float(lower_right.imag))
    return complex(re, im)


def escape_time(c, limit):
    """
    Return the iteration (1 <= i < limit) at which the orbit of ``c`` under
    z -> z*z + c escapes the radius-2 disk, or None if it stays inside.
    """
    if limit < 1:
        raise ValueError("iteration limit must be at least 1, got %r" % limit)
    time = _escape_count(float(c.real), float(c.imag), int(limit))
    return time or None


def _as_pixel_array(pixels):
    if isinstance(pixels, np.ndarray):
        return pixels
    # bytearray / memoryview: write through to the caller's storage
    return np.frombuffer(pixels, dtype=np.uint8)


def render(pixels, bounds, upper_left, lower_right):
    """
    Render the rectangle between ``upper_left`` and ``lower_right`` into
    ``pixels``, a row-major grayscale buffer of ``bounds[0] * bounds[1]``
    bytes. Every byte is overwritten: 0 for points that never escape,
    ``255 - escape_time`` otherwise.
    """
    pixels = _as_pixel_array(pixels)
    width, height = bounds
    if pixels.ndim != 1 or pixels.dtype != np.uint8 or len(pixels) != width * height:
        raise AssertionError(
            "pixel buffer of %d x %s does not match bounds %dx%d"
            % (len(pixels), pixels.dtype, width, height))

    _render_kernel(pixels, width, height,
                   float(upper_left.real), float(upper_left.imag),
                   float(lower_right.real), float(lower_right.imag),
                   ITERATION_LIMIT)


render_region = render


def rows_per_band(height, workers, legacy=False):
    """
    Rows handed to each worker. ``legacy`` keeps the older
    ``height // workers + 1`` formula, which can leave the last band short
    or yield fewer bands than workers; otherwise a plain ceiling division.
    """
    if workers < 1:
        raise ValueError("worker count must be at least 1, got %r" % workers)
    if legacy:
        return height // workers + 1
    return -(-height // workers)


def split_bands(bounds, upper_left, lower_right, rows):
    """
    Partition the image into bands of ``rows`` rows (the last one may be
    shorter) and derive each band's own plane rectangle from the global one.
    """
    width, height = bounds
    band_size = rows * width
    total = width * height

    bands = []
    for index, start in enumerate(range(0, total, band_size)):
        stop = min(start + band_size, total)
        top = rows * index
        band_height = (stop - start) // width
        bands.append(Band(
            index=index,
            start=start,
            stop=stop,
            top=top,
            height=band_height,
            upper_left=pixel_to_point(bounds, (0, top),
                                      upper_left, lower_right),
            lower_right=pixel_to_point(bounds, (width, top + band_height),
                                       upper_left, lower_right),
        ))

    # Each byte must belong to exactly one band
    offset = 0
    for band in bands:
        if band.start != offset or band.stop <= band.start:
            raise AssertionError("bands overlap or leave a gap at offset %d" % offset)
        offset = band.stop
    if offset != total:
        raise AssertionError("bands cover %d of %d pixels" % (offset, total))

    return bands


def render_parallel(pixels, bounds, upper_left, lower_right, worker_count=None,
                    legacy_partition=False, progress=False):
    """
    Render the whole image using one thread per band.

    Parameters:
    -----------
    pixels : numpy.ndarray or writable buffer
        Flat row-major uint8 buffer of width * height bytes
    bounds : (int, int)
        Image width and height in pixels
    upper_left, lower_right : complex
        Corners of the plane rectangle
    worker_count : int
        Number of bands to aim for, defaults to the number of CPUs
    legacy_partition : bool
        Use ``height // worker_count + 1`` rows per band
    progress : bool
        Show a tqdm bar counting finished bands

    Returns:
    --------
    list of Band
        The partition that was rendered
    """
    pixels = _as_pixel_array(pixels)
    width, height = bounds
    if len(pixels) != width * height:
        raise AssertionError("pixel buffer of %d does not match bounds %dx%d"
                             % (len(pixels), width, height))

    if worker_count is None:
        worker_count = os.cpu_count() or 1
    rows = rows_per_band(height, worker_count, legacy=legacy_partition)
    bands = split_bands(bounds, upper_left, lower_right, rows)

    pbar = tqdm(total=len(bands), desc="Rendering Mandelbrot", unit="bands",
                disable=not progress)
    # Leaving the with-block joins every worker, even when one has failed
    with ThreadPoolExecutor(max_workers=len(bands)) as executor:
        futures = [
            executor.submit(render, pixels[band.start:band.stop],
                            (width, band.height),
                            band.upper_left, band.lower_right)
            for band in bands
        ]
        try:
            for future in as_completed(futures):
                future.result()
                pbar.update(1)
        finally:
            pbar.close()

    return bands


def render_image(bounds, upper_left, lower_right, worker_count=None,
                 legacy_partition=False, progress=False):
    """
    Allocate a buffer, render into it in parallel and return it as a
    (height, width) uint8 array.
    """
    width, height = bounds
    pixels = np.zeros(width * height, dtype=np.uint8)
    render_parallel(pixels, bounds, upper_left, lower_right,
                    worker_count=worker_count,
                    legacy_partition=legacy_partition,
                    progress=progress)
    return pixels.reshape(height, width)
