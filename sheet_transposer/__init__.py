"""Sheet music photo to transposed MusicXML.

This package turns photographs of printed sheet music into a single
MusicXML score and transposes it for transposing instruments. Optical
music recognition itself is delegated to the Audiveris engine, run as an
external process.

The main processing pipeline consists of:
1. Image normalization (perspective, deskew, contrast, binarization)
2. Stitching of multi-page uploads
3. Recognition by the external OMR engine
4. Merging of the engine's output fragments into one score
5. Repair of common recognition artifacts (credits, hidden staves)
6. Transposition of the whole score or a single Part

Example:
    Basic usage through the pipeline API:

    >>> from sheet_transposer.pipeline import process_sheet_music
    >>> from sheet_transposer.transposition import transpose_document
    >>>
    >>> result = process_sheet_music(["page1.jpg", "page2.jpg"], "/tmp/run")
    >>> if result.success:
    ...     bb_part = transpose_document(result.musicxml, 2)
"""
