"""Logging setup and argument parsing helpers for the atlas tools"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'


def setup_logging(debug: bool = False, output_dir: Optional[Path] = None) -> logging.Logger:
    """Configure root logging to the console and, optionally, a log file.

    Args:
        debug: Log at DEBUG instead of INFO
        output_dir: If given, also write ``thermal_atlas.log`` there

    Returns:
        Logger for the calling tool
    """
    level = logging.DEBUG if debug else logging.INFO
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if output_dir is not None:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(output_dir / 'thermal_atlas.log'))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    return logging.getLogger('thermal_atlas')


def parse_day_range(selection: Optional[str]) -> Optional[List[int]]:
    """Parse a day selection like ``0-59`` or ``0,7,14`` (inclusive ranges).

    Returns None when no selection was given.
    """
    if not selection:
        return None

    days = []
    for part in selection.split(','):
        part = part.strip()
        if not part:
            continue
        if '-' in part:
            start, end = part.split('-', 1)
            start, end = int(start), int(end)
            if end < start:
                raise ValueError(f"Invalid day range: {part}")
            days.extend(range(start, end + 1))
        else:
            days.append(int(part))

    if any(d < 0 for d in days):
        raise ValueError(f"Day indices must be >= 0: {selection}")
    # Keep first occurrence order, drop duplicates
    return list(dict.fromkeys(days))
