"""
@file imgproc.py
@brief Image processing stages of the contour pipeline.
Each helper takes and returns plain arrays; buffer ownership stays with the
caller.
"""
from __future__ import annotations

import math
from typing import List, Tuple

import cv2
import numpy as np

from ..errors import InvalidInput
from .config_defaults import (
    BLUR_KERNEL,
    BLUR_SIGMA,
    CLOSE_KERNEL,
    GRADIENT_WEIGHT,
    LAPLACE_KSIZE,
    SOBEL_KSIZE,
)

NDArray = np.ndarray


# ----------------------- utilities -----------------------

def _odd(k: int) -> int:
    """
    @brief Ensure a kernel size is odd.
    @param k int Original kernel size.
    @return int Odd kernel size (k or k+1).
    """
    k = int(k)
    return k if (k % 2 == 1) else k + 1


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """
    @brief Clamp ``value`` to ``[lo, hi]``.
    """
    return float(max(lo, min(hi, value)))


def prescale_factor(width: int, height: int, max_pixels: int) -> float:
    """
    @brief Factor that brings ``width*height`` down to at most ``max_pixels``.
    @return float ``1.0`` when the surface is already small enough.
    """
    pixels = width * height
    if max_pixels <= 0 or pixels <= max_pixels:
        return 1.0
    return math.sqrt(max_pixels / float(pixels))


def prescale(pixels: NDArray, factor: float) -> NDArray:
    """
    @brief Downscale ``pixels`` by ``factor`` keeping the aspect ratio.
    """
    h, w = pixels.shape[:2]
    new_w = max(1, int(math.floor(w * factor)))
    new_h = max(1, int(math.floor(h * factor)))
    return cv2.resize(pixels, (new_w, new_h), interpolation=cv2.INTER_AREA)


# ----------------------- pipeline stages -----------------------

def to_gray(pixels: NDArray) -> NDArray:
    """
    @brief Convert an RGBA, RGB or single-channel array to intensity.
    @param pixels NDArray Surface pixels.
    @return NDArray ``uint8`` single-channel image.
    """
    if pixels.dtype != np.uint8:
        pixels = np.clip(pixels, 0, 255).astype(np.uint8)
    if pixels.ndim == 2:
        return pixels.copy()
    if pixels.ndim == 3:
        channels = pixels.shape[2]
        if channels == 4:
            return cv2.cvtColor(pixels, cv2.COLOR_RGBA2GRAY)
        if channels == 3:
            return cv2.cvtColor(pixels, cv2.COLOR_RGB2GRAY)
        if channels == 1:
            return pixels[:, :, 0].copy()
    raise InvalidInput(f"unsupported pixel layout {pixels.shape}")


def smooth(gray: NDArray, ksize: int = BLUR_KERNEL, sigma: float = BLUR_SIGMA) -> NDArray:
    """
    @brief Fixed Gaussian pass suppressing pixel-level noise.
    """
    k = _odd(ksize)
    return cv2.GaussianBlur(gray, (k, k), sigma)


def canny_edges(gray: NDArray, lower: float, upper: float) -> NDArray:
    """
    @brief Canny edge map driven by the adaptive ``(lower, upper)`` pair.
    """
    return cv2.Canny(gray, lower, upper)


def sobel_component(gray: NDArray, dx: int, dy: int, ksize: int = SOBEL_KSIZE) -> NDArray:
    """
    @brief One first-derivative map, absolute-scaled to 8 bit.
    """
    grad = cv2.Sobel(gray, cv2.CV_16S, dx, dy, ksize=_odd(ksize), scale=1, delta=0,
                     borderType=cv2.BORDER_DEFAULT)
    return cv2.convertScaleAbs(grad)


def combine_gradients(grad_x: NDArray, grad_y: NDArray, weight: float = GRADIENT_WEIGHT) -> NDArray:
    """
    @brief Equal-weighted magnitude sum of the horizontal and vertical maps.
    """
    return cv2.addWeighted(grad_x, weight, grad_y, 1.0 - weight, 0)


def curvature_edges(gray: NDArray, ksize: int = LAPLACE_KSIZE) -> NDArray:
    """
    @brief Second-derivative map, absolute value min-max normalized to 0..255.
    """
    lap = cv2.Laplacian(gray, cv2.CV_16S, ksize=_odd(ksize), scale=1, delta=0,
                        borderType=cv2.BORDER_DEFAULT)
    mag = cv2.convertScaleAbs(lap)
    return cv2.normalize(mag, None, 0, 255, cv2.NORM_MINMAX)


def closing_kernel(size: int = CLOSE_KERNEL) -> NDArray:
    """
    @brief Square structuring element for the closing pass.
    """
    k = _odd(size)
    return cv2.getStructuringElement(cv2.MORPH_RECT, (k, k))


def close_gaps(edges: NDArray, kernel: NDArray) -> NDArray:
    """
    @brief Dilate then erode to bridge small gaps in the edge map.
    """
    return cv2.morphologyEx(edges, cv2.MORPH_CLOSE, kernel)


def find_contours(edges: NDArray, retrieval: str = "external") -> Tuple[List[NDArray], NDArray]:
    """
    @brief Flat contour extraction.
    @param retrieval str ``'external'`` keeps outermost outlines, ``'list'``
        returns every outline without hierarchy.
    @return Tuple[List[NDArray], NDArray] ``(contours, hierarchy)``; the
        hierarchy is an empty array when nothing was found.
    """
    mode = cv2.RETR_LIST if retrieval == "list" else cv2.RETR_EXTERNAL
    contours, hierarchy = cv2.findContours(edges, mode, cv2.CHAIN_APPROX_SIMPLE)
    if hierarchy is None:
        hierarchy = np.empty((1, 0, 4), dtype=np.int32)
    return list(contours), hierarchy


def scale_contour(points: NDArray, factor: float) -> NDArray:
    """
    @brief Map contour points from a downscaled image back to the original.
    """
    if factor == 1.0:
        return points
    return np.round(points.astype(np.float64) / factor).astype(np.int32)
