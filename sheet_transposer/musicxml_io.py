"""Reading, parsing and serializing MusicXML documents.

Score documents travel through the package as MusicXML text. Operations
that edit a score parse it into a fresh lxml tree that they own, change
that tree, and serialize it back, so the caller's text is never touched.
"""

import logging
import zipfile
from pathlib import Path

from lxml import etree

from sheet_transposer.models.core_models import PartInfo

logger = logging.getLogger(__name__)

MUSICXML_EXTENSIONS = (".xml", ".musicxml", ".mxl")
CONTAINER_PATH = "META-INF/container.xml"


def _parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False)


def parse_score(musicxml: str | bytes) -> etree._Element:
    """Parse MusicXML text into a new element tree.

    Args:
        musicxml: Document text or raw bytes.

    Returns:
        The root element of a freshly parsed tree.

    Raises:
        ValueError: If the document is not well-formed XML.
    """
    data = musicxml.encode("utf-8") if isinstance(musicxml, str) else musicxml
    try:
        return etree.fromstring(data, _parser())
    except etree.XMLSyntaxError as e:
        raise ValueError(f"Invalid MusicXML: {e}") from e


def serialize_score(root: etree._Element) -> str:
    """Serialize a tree back to text, keeping the declaration and DOCTYPE."""
    data = etree.tostring(
        root.getroottree(), xml_declaration=True, encoding="UTF-8"
    )
    return data.decode("utf-8")


def get_parts(root: etree._Element) -> list[etree._Element]:
    """Top-level ``<part>`` elements in document order."""
    return root.findall("part")


def get_measures(part: etree._Element) -> list[etree._Element]:
    return part.findall("measure")


def list_parts(musicxml: str) -> list[PartInfo]:
    """Summarize the Parts of a score for part selection.

    Args:
        musicxml: Document text.

    Returns:
        One PartInfo per Part, in appearance order. Names come from the
        matching ``score-part/part-name`` in the part list.
    """
    root = parse_score(musicxml)
    names = {}
    for score_part in root.iter("score-part"):
        name = score_part.findtext("part-name") or ""
        names[score_part.get("id", "")] = name.strip()

    infos = []
    for index, part in enumerate(get_parts(root)):
        part_id = part.get("id", "")
        infos.append(
            PartInfo(
                index=index,
                part_id=part_id,
                name=names.get(part_id, ""),
                measure_count=len(get_measures(part)),
            )
        )
    return infos


def _find_root_entry(archive: zipfile.ZipFile) -> str | None:
    names = archive.namelist()
    if CONTAINER_PATH in names:
        try:
            container = etree.fromstring(archive.read(CONTAINER_PATH), _parser())
            for rootfile in container.iter("{*}rootfile"):
                full_path = rootfile.get("full-path")
                if full_path in names:
                    return full_path
        except etree.XMLSyntaxError as e:
            logger.warning(f"Malformed {CONTAINER_PATH}: {e}")

    for name in names:
        if name.endswith(".xml") and not name.startswith("META-INF"):
            return name
    return None


def read_compressed_musicxml(path: str) -> str:
    """Read the root document of a compressed ``.mxl`` archive.

    The root document is the one named by ``META-INF/container.xml``; when
    the manifest is missing or malformed, the first ``.xml`` entry outside
    ``META-INF/`` is used.

    Raises:
        zipfile.BadZipFile: If the file is not a ZIP archive.
        ValueError: If the archive holds no MusicXML document.
    """
    with zipfile.ZipFile(path) as archive:
        entry = _find_root_entry(archive)
        if entry is None:
            raise ValueError(f"Could not find MusicXML content in {path}")
        return archive.read(entry).decode("utf-8")


def read_musicxml(path: str) -> str:
    """Read a MusicXML document from disk.

    ``.xml`` and ``.musicxml`` files are read as text. ``.mxl`` files are
    read as compressed archives, falling back to plain text when the file
    is not actually a ZIP. Unknown extensions are read as text.

    Args:
        path: Document path.

    Returns:
        The MusicXML text.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If an archive holds no MusicXML document.
    """
    if Path(path).suffix.lower() == ".mxl":
        try:
            return read_compressed_musicxml(path)
        except zipfile.BadZipFile:
            logger.warning(f"Failed to read {path} as ZIP, trying as plain XML")
    return Path(path).read_text(encoding="utf-8")
