"""Gradio web interface for the sheet music transposer.

Users upload photos of printed sheet music (or a MusicXML file), the pages
are normalized and recognized into a single MusicXML score, and the score
can then be transposed for a chosen instrument, either as a whole or one
Part at a time.

The interface is organized into two sections:
- Recognition: upload, status and the recognized score
- Transposition: instrument preset, custom interval and Part selection
"""

import logging

import gradio as gr

from sheet_transposer.omr_engine import is_engine_available
from sheet_transposer.transposition import get_transpose_presets
from sheet_transposer.ui_updates import (
    ALL_PARTS_CHOICE,
    cleanup_session,
    preset_choices,
    process_upload,
    update_transposition,
)
from sheet_transposer.vision import detect_vision_capability

logger = logging.getLogger(__name__)

# Probed once at startup and passed to every pipeline run
VISION = detect_vision_capability()

preset_descriptions = {
    preset.name: f"{preset.description} ({preset.semitones:+d} semitones)"
    for preset in get_transpose_presets()
}


def preset_changed(preset_name: str) -> tuple[str, gr.update]:
    """Show the preset's description and the custom slider for "Custom".

    Args:
        preset_name: Selected preset display name.

    Returns:
        Description text and a visibility update for the custom slider.
    """
    description = preset_descriptions.get(preset_name, "")
    return description, gr.update(visible=(preset_name == "Custom"))


def upload_changed(
    file_paths: list[str] | None,
    preset_name: str,
    custom_semitones: int,
    request: gr.Request,
) -> tuple:
    """Recognize the upload, then produce the initial transposed view."""
    session_id = request.session_hash
    status, score_id, musicxml, download, choices = process_upload(
        file_paths, session_id, VISION
    )
    if score_id is None:
        return (
            status,
            None,
            musicxml,
            download,
            gr.update(choices=choices, value=ALL_PARTS_CHOICE),
            "",
            "",
            None,
        )
    t_status, t_xml, t_download = update_transposition(
        score_id, session_id, preset_name, custom_semitones, ALL_PARTS_CHOICE
    )
    return (
        status,
        score_id,
        musicxml,
        download,
        gr.update(choices=choices, value=ALL_PARTS_CHOICE),
        t_status,
        t_xml,
        t_download,
    )


def transpose_changed(
    score_id: str | None,
    preset_name: str,
    custom_semitones: int,
    part_choice: str | None,
    request: gr.Request,
) -> tuple[str, str, str | None]:
    return update_transposition(
        score_id, request.session_hash, preset_name, custom_semitones, part_choice
    )


def create_gradio_interface() -> gr.Blocks:
    """Create and configure the main Gradio web interface.

    Returns:
        Configured Gradio Blocks interface ready for launching.
    """
    # Check every 30 minutes, delete files older than 1 hour
    with gr.Blocks(
        title="Sheet Music Transposer", delete_cache=(1800, 3600)
    ) as interface:
        gr.Markdown("# 🎼 Sheet Music Transposer")
        gr.Markdown(
            "Photograph your sheet music, upload the pages in order, "
            "and transpose the recognized score for your instrument."
        )
        if not is_engine_available():
            gr.Markdown(
                "_Audiveris was not found. Image uploads will fail until it is "
                "installed or AUDIVERIS_PATH is set; MusicXML uploads still work._"
            )

        # Holds the registered score ID across callbacks
        score_state = gr.State(None)

        with gr.Row():
            with gr.Column(scale=1):
                # 1. Recognition
                with gr.Group():
                    gr.Markdown("### 1. Recognition")
                    uploads = gr.File(
                        label="Sheet Music Pages",
                        file_count="multiple",
                        type="filepath",
                        file_types=["image", ".pdf", ".xml", ".musicxml", ".mxl"],
                    )
                    status_display = gr.Textbox(
                        label="Status", value="Waiting for upload..."
                    )
                    score_view = gr.Code(label="Recognized MusicXML", language=None)
                    score_download = gr.File(
                        label="Download Recognized Score", type="filepath"
                    )

            with gr.Column(scale=1):
                # 2. Transposition
                with gr.Group():
                    gr.Markdown("### 2. Transposition")
                    names = preset_choices()
                    preset = gr.Dropdown(
                        choices=names,
                        value=names[0],
                        label="Instrument",
                        info="Written pitch for the selected instrument.",
                    )
                    preset_description = gr.Markdown(preset_descriptions[names[0]])
                    custom_semitones = gr.Slider(
                        -12,
                        12,
                        value=0,
                        step=1,
                        label="Custom Interval",
                        info="Semitones up (positive) or down (negative).",
                        visible=False,
                    )
                    part_selector = gr.Dropdown(
                        choices=[ALL_PARTS_CHOICE],
                        value=ALL_PARTS_CHOICE,
                        label="Part",
                        info="Transpose every Part, or only one.",
                    )
                    transpose_status = gr.Textbox(label="Transposition", value="")
                    transposed_view = gr.Code(
                        label="Transposed MusicXML", language=None
                    )
                    transposed_download = gr.File(
                        label="Download Transposed Score", type="filepath"
                    )

        transpose_inputs = [
            score_state,
            preset,
            custom_semitones,
            part_selector,
        ]
        transpose_outputs = [transpose_status, transposed_view, transposed_download]

        uploads.upload(
            fn=upload_changed,
            inputs=[uploads, preset, custom_semitones],
            outputs=[
                status_display,
                score_state,
                score_view,
                score_download,
                part_selector,
                transpose_status,
                transposed_view,
                transposed_download,
            ],
        )

        preset.change(
            fn=preset_changed,
            inputs=[preset],
            outputs=[preset_description, custom_semitones],
        )

        for control in (preset, custom_semitones, part_selector):
            control.change(
                fn=transpose_changed,
                inputs=transpose_inputs,
                outputs=transpose_outputs,
            )

    def cleanup_session_handler(request: gr.Request) -> None:
        """Clean up session files when user disconnects."""
        try:
            cleanup_session(request.session_hash)
        except OSError as e:
            logger.warning(f"Cleanup failed for session {request.session_hash}: {e}")

    interface.unload(cleanup_session_handler)

    return interface


if __name__ == "__main__":
    import asyncio
    import sys

    logging.basicConfig(level=logging.INFO)
    # Reduce logging verbosity for asyncio to suppress connection noise
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    demo = create_gradio_interface()
    demo.launch(share=False, show_error=True, server_port=7860)
