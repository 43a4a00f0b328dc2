"""Merging of several MusicXML fragments into one multi-page score.

The OMR engine emits one document per page (or per detected "movement").
Merging appends every fragment's measures to the matching Part of the
first fragment, so the result reads as one continuous score.
"""

import copy
import logging
import re

from lxml import etree

from sheet_transposer.musicxml_io import (
    get_measures,
    get_parts,
    parse_score,
    serialize_score,
)

logger = logging.getLogger(__name__)


def last_measure_number(part: etree._Element) -> int:
    """Number of the last measure in a Part.

    Reads the leading digits of the last measure's ``number`` attribute
    (so "12a" counts as 12); falls back to the measure count when the
    attribute is missing or not numeric.
    """
    measures = get_measures(part)
    if not measures:
        return 0
    match = re.match(r"\s*(\d+)", measures[-1].get("number", ""))
    if match:
        return int(match.group(1))
    return len(measures)


def strip_boundary_attributes(measure: etree._Element) -> None:
    """Drop restated clef and key declarations from a continuation measure.

    A page boundary restates the staff's clef and key; keeping them would
    let a recognition error there silently change the staff. Attributes
    containers left empty are removed.
    """
    for attributes in measure.findall("attributes"):
        for child in attributes.findall("clef") + attributes.findall("key"):
            attributes.remove(child)
        if len(attributes) == 0 and not (attributes.text or "").strip():
            measure.remove(attributes)


def mark_system_break(measure: etree._Element) -> None:
    """Make the measure start a new system rather than a new page.

    An existing ``<print>`` loses its ``new-page`` flag and moves to the
    front of the measure; otherwise a new ``<print new-system="yes"/>`` is
    inserted as the first child.
    """
    print_el = measure.find("print")
    if print_el is None:
        print_el = etree.Element("print")
    else:
        measure.remove(print_el)
        print_el.attrib.pop("new-page", None)
    print_el.set("new-system", "yes")
    measure.insert(0, print_el)


def prepare_continuation(
    part: etree._Element, start_number: int, first_part: bool
) -> list[etree._Element]:
    """Copy a fragment Part's measures, renumbered from ``start_number + 1``."""
    prepared = []
    for offset, measure in enumerate(get_measures(part)):
        new_measure = copy.deepcopy(measure)
        new_measure.set("number", str(start_number + offset + 1))
        if offset == 0:
            strip_boundary_attributes(new_measure)
            if first_part:
                mark_system_break(new_measure)
        prepared.append(new_measure)
    return prepared


def merge_documents(documents: list[str]) -> str:
    """Merge MusicXML fragments into one document.

    The first fragment with Parts is the base. Every later fragment is
    matched to it Part by Part (by position); its measures are appended to
    the base Part and renumbered to continue from the base's last measure.
    Base measures are never renumbered. Fragments with no Parts are skipped,
    and a Part-count mismatch merges only the Parts both documents have.

    Args:
        documents: MusicXML texts in page order.

    Returns:
        The merged MusicXML text; the single input unchanged when only one
        document is given.

    Raises:
        ValueError: If no documents are given or none of them has a Part.
    """
    if not documents:
        raise ValueError("No MusicXML documents to merge")
    if len(documents) == 1:
        return documents[0]

    roots = [parse_score(document) for document in documents]

    base_index = next(
        (i for i, root in enumerate(roots) if get_parts(root)), None
    )
    if base_index is None:
        raise ValueError("None of the MusicXML documents has part elements")
    for skipped in range(base_index):
        logger.warning(f"Document {skipped + 1} has no part elements, skipping")

    base_root = roots[base_index]
    base_parts = get_parts(base_root)
    logger.info(f"Base document has {len(base_parts)} parts")

    for doc_index in range(base_index + 1, len(roots)):
        parts = get_parts(roots[doc_index])
        if not parts:
            logger.warning(f"Document {doc_index + 1} has no part elements, skipping")
            continue

        if len(parts) != len(base_parts):
            logger.warning(
                f"Document {doc_index + 1} has {len(parts)} parts, but base has "
                f"{len(base_parts)}. Merging available parts only."
            )

        part_count = min(len(parts), len(base_parts))
        # Compute every continuation before touching the base tree.
        continuations = [
            prepare_continuation(
                parts[i], last_measure_number(base_parts[i]), first_part=(i == 0)
            )
            for i in range(part_count)
        ]
        for base_part, measures in zip(base_parts, continuations):
            logger.debug(
                f"Appending {len(measures)} measures to part {base_part.get('id')}"
            )
            base_part.extend(measures)

    return serialize_score(base_root)
