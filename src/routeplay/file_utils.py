#!/usr/bin/env python3
"""
Filename utilities for generating output filenames.
"""

import os
import logging

logger = logging.getLogger(__name__)

ROUTE_EXTENSIONS = (".gpx", ".json")

MAX_ATTEMPTS = 100


def generate_output_filename(input_filename: str) -> str:
    """
    Generates an output HTML filename and reserves it by creating an empty file.

    Strategy:
    1. If input ends with .gpx or .json (case-insensitive), drop it
    2. Append " playback.html"
    3. If file exists, try " (1).html", " (2).html", etc. (by attempting to create exclusively)
    4. Use exclusive open (`open(path, 'x')`) to avoid race conditions and reserve the name.

    Args:
        input_filename: Path to the input route file, or a URL

    Returns:
        Safe output filename that has been created as an empty file to reserve its name

    Raises:
        RuntimeError: If no available filename found after MAX_ATTEMPTS attempts
        ValueError: If a filename cannot be created (e.g., due to permissions or an invalid name detected by the OS)
    """
    input_dir = os.path.dirname(input_filename)
    input_base = os.path.basename(input_filename)

    # URLs and bare names land in the working directory
    if "://" in input_filename:
        input_dir = ""
        input_base = input_base.split("?")[0] or "route"

    base_name = input_base
    for extension in ROUTE_EXTENSIONS:
        if input_base.lower().endswith(extension):
            base_name = input_base[: -len(extension)]
            break

    base_output = base_name + " playback"

    candidates = [os.path.join(input_dir, base_output + ".html")]
    candidates += [
        os.path.join(input_dir, f"{base_output} ({i}).html")
        for i in range(1, MAX_ATTEMPTS + 1)
    ]

    for candidate in candidates:
        try:
            with open(candidate, "x"):
                pass  # File created successfully and is kept
            return candidate
        except FileExistsError:
            continue
        except OSError as e:
            logger.error(f"Cannot create file {candidate}: {e}")
            raise ValueError(f"Cannot create file: {e}")

    logger.error(
        f"Could not find an available filename after {MAX_ATTEMPTS} attempts. "
        f"Please clean up your output directory or specify --output explicitly."
    )
    raise RuntimeError(f"No available filename found after {MAX_ATTEMPTS} attempts")
