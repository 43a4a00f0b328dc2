"""Scratch file management for pipeline runs.

This module provides a scratch-space manager that owns the temporary
directories of one session. Pipeline components only ever write into the
directories they are given; removing them is the job of whoever created
the ScratchSpace.
"""

import os
import shutil
import tempfile
from pathlib import Path


class ScratchSpace:
    """Owns the temporary files of one session.

    Each pipeline run gets a fresh subdirectory, and results offered for
    download are written with a stable name per file type so repeated
    transpositions overwrite rather than accumulate.

    Attributes:
        session_dir: Path to the session's temporary directory.
        current_files: Dictionary tracking current result files by type.
    """

    def __init__(self, session_id: str | None = None):
        """Initialize the scratch space with an optional session ID.

        Args:
            session_id: Optional unique session identifier. If None, a
                unique directory is created.
        """
        base_dir = os.environ.get("GRADIO_TEMP_DIR", tempfile.gettempdir())

        if session_id:
            self.session_dir = Path(base_dir) / f"sheet-transposer-{session_id}"
        else:
            self.session_dir = Path(
                tempfile.mkdtemp(prefix="sheet-transposer-", dir=base_dir)
            )

        self.session_dir.mkdir(parents=True, exist_ok=True)
        self.current_files: dict[str, Path] = {}

    def new_run_dir(self) -> str:
        """Create an empty directory for one pipeline run."""
        return tempfile.mkdtemp(prefix="run-", dir=self.session_dir)

    def get_result_path(self, file_type: str, extension: str = "") -> str:
        """Get the path for a result file of the specified type.

        Args:
            file_type: Type of file (e.g., "score", "transposed").
            extension: File extension including dot (e.g., ".musicxml").

        Returns:
            Absolute path to the result file as a string.
        """
        file_path = self.session_dir / f"current_{file_type}{extension}"
        self.current_files[file_type] = file_path
        return str(file_path)

    def write_text(self, file_type: str, content: str, extension: str = "") -> str:
        """Write text to a result file, overwriting if it exists.

        Returns:
            Path to the written file as a string.
        """
        file_path = self.get_result_path(file_type, extension)

        # Write atomically to prevent partial reads
        temp_path = file_path + ".tmp"
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(temp_path, file_path)

        return file_path

    def cleanup_all(self) -> None:
        """Remove the session directory and everything in it.

        Safe to call multiple times.
        """
        self.current_files.clear()
        shutil.rmtree(self.session_dir, ignore_errors=True)
