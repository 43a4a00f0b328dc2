"""Heuristic repair of known recognition artifacts in MusicXML.

Two independent passes:

1. Credits. The engine's OCR turns measure numbers, page numbers and
   catalog numbers into free-text credits, and renders titles at body-text
   size. Each credit is classified from its font and position; noise is
   removed, titles are enlarged and centred, composer lines are kept, and a
   composer credit is created from the identification metadata when the
   page has none.
2. Hidden staves. The engine sometimes marks a staff as not printed in the
   last system of a page. Hidden staff-details in each Part's last three
   measures are removed. A hidden staff next to a G clef on the middle line
   in another Part usually means content from two staves was merged; that
   is only reported, never fixed.
"""

import logging
import re

from lxml import etree

from sheet_transposer.models.core_models import Credit, CreditCategory
from sheet_transposer.models.pipeline_models import RepairSummary
from sheet_transposer.musicxml_io import (
    get_measures,
    get_parts,
    parse_score,
    serialize_score,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_WIDTH = 1200.0
DEFAULT_PAGE_HEIGHT = 2000.0

TITLE_AREA_FRACTION = 0.85
RIGHT_SIDE_FRACTION = 0.7
LOW_ON_PAGE_FRACTION = 0.5
COMPOSER_MIN_SIZE = 10
COMPOSER_MAX_SIZE = 14
SMALL_FONT_SIZE = 10
PARENTHETICAL_MAX_SIZE = 12
TITLE_MIN_SIZE = 14
TITLE_FONT_SIZE = 28
COMPOSER_FONT_SIZE = 12
COMPOSER_MARGIN = 100
TRAILING_MEASURES = 3

_PARENTHETICAL = re.compile(r"^\([^)]+\)$")


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _to_float(value: str | None, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def page_size(root: etree._Element) -> tuple[float, float]:
    """Page width and height from ``defaults/page-layout``, with defaults."""
    layout = root.find("defaults/page-layout")
    if layout is None:
        return DEFAULT_PAGE_WIDTH, DEFAULT_PAGE_HEIGHT
    width = _to_float(layout.findtext("page-width"), DEFAULT_PAGE_WIDTH)
    height = _to_float(layout.findtext("page-height"), DEFAULT_PAGE_HEIGHT)
    return width, height


def read_credit(words: etree._Element) -> Credit:
    """Build a Credit from a ``<credit-words>`` element."""
    return Credit(
        text="".join(words.itertext()).strip(),
        x=_to_float(words.get("default-x"), 0.0),
        y=_to_float(words.get("default-y"), 0.0),
        font_size=_to_float(words.get("font-size"), 10.0),
        italic=words.get("font-style") == "italic",
        halign=words.get("halign"),
    )


def classify_credit(
    credit: Credit, page_width: float, page_height: float
) -> CreditCategory:
    """Decide whether a credit is a title, a composer line, or noise.

    MusicXML measures ``y`` from the bottom of the page, so the title area
    (top 15%) is ``y > 0.85 * height``.

    Args:
        credit: The credit to classify.
        page_width: Page width in tenths.
        page_height: Page height in tenths.

    Returns:
        COMPOSER for small italic text at the top right, NOISE for stray
        numbers and fragments, TITLE for large text in the title area, and
        OTHER for everything else.
    """
    text = credit.text
    size = credit.font_size
    in_title_area = credit.y > page_height * TITLE_AREA_FRACTION
    on_right_side = credit.x > page_width * RIGHT_SIDE_FRACTION
    low_on_page = credit.y < page_height * LOW_ON_PAGE_FRACTION

    if (
        credit.italic
        and on_right_side
        and in_title_area
        and COMPOSER_MIN_SIZE <= size <= COMPOSER_MAX_SIZE
    ):
        return CreditCategory.COMPOSER
    if text.isdigit():
        return CreditCategory.NOISE
    if len(text) <= 2 and not in_title_area:
        return CreditCategory.NOISE
    if _PARENTHETICAL.match(text) and size < PARENTHETICAL_MAX_SIZE:
        return CreditCategory.NOISE
    if size < SMALL_FONT_SIZE and low_on_page:
        return CreditCategory.NOISE
    if in_title_area and size >= TITLE_MIN_SIZE:
        return CreditCategory.TITLE
    return CreditCategory.OTHER


def enhance_title(words: etree._Element, credit: Credit, page_width: float) -> None:
    """Enlarge, embolden and centre a title credit in place."""
    words.set("font-size", _format_number(max(credit.font_size, TITLE_FONT_SIZE)))
    words.set("font-weight", "bold")
    words.set("halign", "center")
    words.set("default-x", _format_number(page_width / 2))


def cleanup_credits(root: etree._Element, summary: RepairSummary) -> None:
    """Remove noise credits and promote titles."""
    width, height = page_size(root)
    credits = root.findall("credit")
    logger.info(f"Found {len(credits)} credit elements")

    removals = []
    titles = []
    for credit_el in credits:
        words = credit_el.find("credit-words")
        if words is None:
            continue
        credit = read_credit(words)
        category = classify_credit(credit, width, height)
        logger.debug(
            f'Credit "{credit.text}" (size={credit.font_size:g}, y={credit.y:g}) '
            f"classified as {category.value}"
        )
        if category is CreditCategory.NOISE:
            removals.append(credit_el)
        elif category is CreditCategory.TITLE:
            titles.append((words, credit))

    for credit_el in removals:
        root.remove(credit_el)
    for words, credit in titles:
        enhance_title(words, credit, width)
        logger.info(f'Enhanced title styling: "{credit.text}"')

    summary.credits_removed += len(removals)
    summary.titles_enhanced += len(titles)


def find_composer(root: etree._Element) -> str | None:
    """Composer name from ``identification/creator[@type='composer']``."""
    for creator in root.findall("identification/creator"):
        if creator.get("type") == "composer":
            name = "".join(creator.itertext()).strip()
            return name or None
    return None


def _insert_credit(root: etree._Element, credit_el: etree._Element) -> None:
    credits = root.findall("credit")
    if credits:
        credits[-1].addnext(credit_el)
        return
    defaults = root.find("defaults")
    if defaults is not None:
        defaults.addnext(credit_el)
        return
    part_list = root.find("part-list")
    if part_list is not None:
        part_list.addprevious(credit_el)
        return
    root.append(credit_el)


def ensure_composer_credit(root: etree._Element, summary: RepairSummary) -> None:
    """Create a visible composer credit from identification metadata.

    Nothing is added when no composer is named or a credit with exactly
    that text already exists.
    """
    composer = find_composer(root)
    if composer is None:
        return

    for words in root.findall("credit/credit-words"):
        if "".join(words.itertext()).strip() == composer:
            logger.info(f'Composer credit already exists: "{composer}"')
            return

    width, height = page_size(root)
    credit_el = etree.Element("credit", page="1")
    words = etree.SubElement(credit_el, "credit-words")
    words.set("default-x", _format_number(width - COMPOSER_MARGIN))
    words.set("default-y", _format_number(height - COMPOSER_MARGIN))
    words.set("font-family", "serif")
    words.set("font-size", str(COMPOSER_FONT_SIZE))
    words.set("font-style", "italic")
    words.set("halign", "right")
    words.text = composer

    _insert_credit(root, credit_el)
    summary.composer_credits_added += 1
    logger.info(f'Created credit for composer: "{composer}"')


def _is_hidden(staff_details: etree._Element) -> bool:
    return staff_details.get("print-object") == "no"


def _has_middle_line_g_clef(measure: etree._Element) -> bool:
    for clef in measure.iter("clef"):
        if clef.findtext("sign") == "G" and (clef.findtext("line") or "").strip() == "3":
            return True
    return False


def find_merged_staff_advisories(parts: list[etree._Element]) -> list[str]:
    """Report measures where a hidden staff meets a suspicious clef.

    For every measure number of the first Part, a hidden staff in some Part
    together with a G clef on line 3 in a different Part at the same measure
    number suggests the engine merged two staves' content. Detection only.

    Returns:
        One message per suspicious (measure, part) pair.
    """
    if not parts:
        return []

    by_number = [
        {m.get("number"): m for m in get_measures(part)} for part in parts
    ]
    advisories = []
    for measure in get_measures(parts[0]):
        number = measure.get("number")
        if not number:
            continue

        hidden_index = None
        for index, measures in enumerate(by_number):
            candidate = measures.get(number)
            if candidate is not None and any(
                _is_hidden(d) for d in candidate.iter("staff-details")
            ):
                hidden_index = index
        if hidden_index is None:
            continue

        for index, measures in enumerate(by_number):
            if index == hidden_index:
                continue
            candidate = measures.get(number)
            if candidate is not None and _has_middle_line_g_clef(candidate):
                message = (
                    f"Measure {number}, part {index + 1}: G clef on line 3 next to a "
                    f"hidden staff in part {hidden_index + 1}; content of two staves "
                    "was probably merged. Re-scan with a better image or crop it."
                )
                logger.warning(message)
                advisories.append(message)
    return advisories


def remove_hidden_trailing_staves(
    parts: list[etree._Element], summary: RepairSummary
) -> None:
    """Remove not-printed staff-details from each Part's last three measures."""
    removals = []
    for part_index, part in enumerate(parts):
        for measure in get_measures(part)[-TRAILING_MEASURES:]:
            for details in measure.iter("staff-details"):
                if _is_hidden(details):
                    logger.info(
                        f"Removing hidden staff-details in measure "
                        f"{measure.get('number')} (part {part_index + 1})"
                    )
                    removals.append(details)

    for details in removals:
        details.getparent().remove(details)
    summary.hidden_staves_removed += len(removals)


def repair_score(root: etree._Element) -> RepairSummary:
    """Apply every repair pass to a parsed score in place.

    Args:
        root: Root of a tree owned by the caller.

    Returns:
        RepairSummary describing what changed and what was only reported.
    """
    summary = RepairSummary()
    cleanup_credits(root, summary)
    ensure_composer_credit(root, summary)

    parts = get_parts(root)
    if parts:
        logger.info(f"Analyzing {len(parts)} parts for hidden staves")
        summary.advisories = find_merged_staff_advisories(parts)
        remove_hidden_trailing_staves(parts, summary)
    return summary


def repair_document_with_summary(musicxml: str) -> tuple[str, RepairSummary]:
    """Repair a document and report what was done.

    Returns:
        Tuple of (document, summary). The document is the input object
        itself when nothing changed.
    """
    root = parse_score(musicxml)
    summary = repair_score(root)
    if summary.total_changes == 0:
        return musicxml, summary

    logger.info(
        f"Applied {summary.total_changes} fix(es): "
        f"{summary.composer_credits_added} composer credit, "
        f"{summary.credits_removed} credits removed, "
        f"{summary.titles_enhanced} titles enhanced, "
        f"{summary.hidden_staves_removed} hidden staves"
    )
    return serialize_score(root), summary


def repair_document(musicxml: str) -> str:
    """Repair known recognition artifacts.

    Args:
        musicxml: Document text.

    Returns:
        The repaired document, or the input unchanged if nothing applied.
    """
    repaired, _ = repair_document_with_summary(musicxml)
    return repaired
