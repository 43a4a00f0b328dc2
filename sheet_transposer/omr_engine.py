"""Adapter for the external optical-music-recognition engine.

The engine (Audiveris or a compatible command line) is treated as an
opaque batch tool: it receives image paths and an output directory, runs
to completion, and leaves compressed MusicXML files behind.
"""

import logging
import os
import re
import shutil
import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable

from sheet_transposer.models import EngineParams, EngineResult
from sheet_transposer.stitching import natural_sort_key

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

EXECUTABLE_NAMES = ("audiveris", "Audiveris", "audiveris.bat", "Audiveris.bat")

SYSTEM_PATHS = {
    "darwin": [
        "/Applications/Audiveris.app/Contents/MacOS/Audiveris",
        "/usr/local/bin/audiveris",
        "~/Applications/Audiveris.app/Contents/MacOS/Audiveris",
    ],
    "win32": [
        "C:\\Program Files\\Audiveris\\bin\\Audiveris.bat",
        "C:\\Program Files (x86)\\Audiveris\\bin\\Audiveris.bat",
    ],
    "linux": [
        "/usr/bin/audiveris",
        "/usr/local/bin/audiveris",
        "/opt/audiveris/bin/Audiveris",
        "~/.local/bin/audiveris",
    ],
}

# Keyword in the engine's stdout -> (stage label, percent complete)
PROGRESS_MARKERS = [
    ("Loading", "Loading image...", 10),
    ("SCALE", "Detecting scale...", 20),
    ("GRID", "Building grid...", 30),
    ("BINARY", "Processing binary...", 40),
    ("HEADS", "Recognizing note heads...", 50),
    ("STEMS", "Detecting stems...", 60),
    ("BEAMS", "Processing beams...", 70),
    ("SYMBOLS", "Recognizing symbols...", 80),
    ("Export", "Exporting MusicXML...", 90),
]

_MOVEMENT = re.compile(r"\.mvt(\d+)\.mxl$")


def locate_engine(params: EngineParams) -> str | None:
    """Find the engine launcher.

    Checks, in order: the configured executable, the extra search paths,
    ``PATH``, and the platform's usual install locations.

    Returns:
        The launcher path, or None if the engine is not installed.
    """
    candidates = []
    if params.executable:
        candidates.append(params.executable)
    candidates.extend(params.extra_search_paths)
    for candidate in candidates:
        if os.path.isfile(os.path.expanduser(candidate)):
            return os.path.expanduser(candidate)

    for name in EXECUTABLE_NAMES:
        found = shutil.which(name)
        if found:
            return found

    platform_key = "linux" if sys.platform.startswith("linux") else sys.platform
    for candidate in SYSTEM_PATHS.get(platform_key, []):
        path = os.path.expanduser(candidate)
        if os.path.isfile(path):
            return path
    return None


def is_engine_available(params: EngineParams | None = None) -> bool:
    return locate_engine(params or EngineParams()) is not None


def build_engine_command(
    executable: str, input_paths: list[str], output_dir: str
) -> list[str]:
    """Batch, non-interactive, export-enabled command line."""
    return [executable, "-batch", "-export", "-output", output_dir, "--", *input_paths]


def build_engine_env(params: EngineParams) -> dict[str, str]:
    env = dict(os.environ)
    if params.tessdata_dir:
        env["TESSDATA_PREFIX"] = params.tessdata_dir
    return env


def parse_progress(line: str) -> tuple[str, int] | None:
    """Map one line of engine output to a (stage, percent) update."""
    for keyword, stage, percent in PROGRESS_MARKERS:
        if keyword in line:
            return stage, percent
    return None


def order_output_files(names: list[str]) -> list[str]:
    """Order recognition outputs for merging.

    Several movement files (``name.mvt1.mxl``, ``name.mvt2.mxl``...) come
    from one tall image and are ordered by movement number. Otherwise the
    files are per-page outputs, ordered by name with numbers compared
    numerically.

    Args:
        names: ``.mxl`` file names.

    Returns:
        The names in merge order.
    """
    movements = [name for name in names if _MOVEMENT.search(name)]
    if len(movements) > 1:
        return sorted(movements, key=lambda n: int(_MOVEMENT.search(n).group(1)))
    return sorted(names, key=natural_sort_key)


def collect_output_files(output_dir: str) -> list[str]:
    """Compressed MusicXML files in ``output_dir``, in merge order."""
    directory = Path(output_dir)
    if not directory.is_dir():
        return []
    names = [p.name for p in directory.iterdir() if p.suffix == ".mxl"]
    logger.info(f"Found {len(names)} .mxl file(s): {names}")
    return [str(directory / name) for name in order_output_files(names)]


def run_engine(
    input_paths: list[str],
    output_dir: str,
    params: EngineParams,
    on_progress: ProgressCallback | None = None,
) -> EngineResult:
    """Run the engine to completion.

    Blocks until the process exits. Standard output is streamed for
    progress reporting while standard error is captured concurrently.

    Args:
        input_paths: Images (or one stitched image) to recognize.
        output_dir: Directory the engine writes into.
        params: Engine parameters.
        on_progress: Optional callback receiving (stage, percent).

    Returns:
        EngineResult with the exit status, ordered output files and stderr.

    Raises:
        FileNotFoundError: If the engine cannot be located.
    """
    executable = locate_engine(params)
    if executable is None:
        raise FileNotFoundError(
            "OMR engine not found. Install Audiveris or set AUDIVERIS_PATH."
        )

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    command = build_engine_command(executable, input_paths, output_dir)
    logger.info(f"Spawning OMR engine: {command}")
    if on_progress:
        count = len(input_paths)
        on_progress(f"Starting OMR engine ({count} file{'s' if count > 1 else ''})...", 0)

    process = subprocess.Popen(
        command,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        encoding="utf-8",
        errors="replace",
        env=build_engine_env(params),
    )
    with ThreadPoolExecutor(max_workers=1) as pool:
        stderr_future = pool.submit(process.stderr.read)
        try:
            for line in process.stdout:
                logger.debug(f"[engine stdout] {line.rstrip()}")
                update = parse_progress(line)
                if update and on_progress:
                    on_progress(*update)
        except BaseException:
            process.kill()
            process.wait()
            raise
        return_code = process.wait()
        stderr = stderr_future.result()

    if stderr:
        logger.debug(f"[engine stderr] {stderr.rstrip()}")
    if return_code != 0:
        return EngineResult(return_code=return_code, stderr=stderr)

    if on_progress:
        on_progress("Complete", 100)
    return EngineResult(
        return_code=return_code,
        output_files=collect_output_files(output_dir),
        stderr=stderr,
    )
