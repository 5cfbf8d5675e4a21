"""
OCR Lines Module - Rebuild visual lines from unordered OCR text fragments

A fragment is one span of OCR text with a bounding polygon:

    {
        'text': 'Account number:',
        'page': 0,
        'indices': {'start': 120, 'end': 135},
        'bounding_poly': {
            'vertices': {'top_left': {'x': 51, 'y': 70}, 'top_right': ..., 'bottom_left': ..., 'bottom_right': ...},
            'normalized_vertices': {'top_left': {'x': 0.08, 'y': 0.067}, ...}
        }
    }

A line is {'page': int, 'fragments': [...], 'bounding_poly': {...}} and the
reconstructor returns lines grouped per page.
"""

import re
from typing import Dict, List, Optional, Tuple

from config import LINE_Y_THRESHOLD

CORNERS = ('top_left', 'top_right', 'bottom_left', 'bottom_right')

# Corners whose x/y take the minimum when polygons are combined (the rest take the maximum)
_MIN_X = ('top_left', 'bottom_left')
_MIN_Y = ('top_left', 'top_right')


def group_fragments_into_lines(pages: List[List[Dict]], threshold: float = LINE_Y_THRESHOLD,
                               repair_window: int = 0) -> List[List[Dict]]:
    """
    Group each page's fragments into lines by vertical proximity.

    A fragment joins the line of the fragment emitted just before it when their
    normalized bottom-left y values differ by at most `threshold`. A page
    boundary always closes the open line.

    Args:
        pages: Fragments per page, in OCR emission order
        threshold: Maximum normalized y difference for two fragments on one line
        repair_window: When > 0, a fragment that does not continue the current
            line may re-attach to one of this many recent lines on the same page

    Returns:
        Lines per page, each page in emission order
    """
    lines_by_page = []

    for page_index, fragments in enumerate(pages):
        page_groups = []
        current = None
        previous = None

        for fragment in fragments:
            if previous is not None and abs(_bottom_y(fragment) - _bottom_y(previous)) <= threshold:
                current.append(fragment)
            else:
                target = None
                if repair_window > 0:
                    target = _find_recent_line(page_groups, fragment, threshold, repair_window)
                if target is None:
                    target = []
                    page_groups.append(target)
                target.append(fragment)
                current = target
            previous = fragment

        lines_by_page.append([build_line(page_index, group) for group in page_groups])

    return lines_by_page


def _find_recent_line(page_groups: List[List[Dict]], fragment: Dict, threshold: float,
                      window: int) -> Optional[List[Dict]]:
    """Find a recent line on this page whose last fragment is within tolerance"""
    y = _bottom_y(fragment)
    for group in reversed(page_groups[-window:]):
        if abs(_bottom_y(group[-1]) - y) <= threshold:
            return group
    return None


def build_line(page: int, fragments: List[Dict]) -> Dict:
    """Create a line record with its combined bounding polygon"""
    return {
        'page': page,
        'fragments': list(fragments),
        'bounding_poly': combined_bounding_poly(fragments)
    }


def combined_bounding_poly(fragments: List[Dict]) -> Dict:
    """Smallest axis-aligned polygon covering every fragment, in both coordinate spaces"""
    poly = {}
    for space in ('vertices', 'normalized_vertices'):
        corners = {}
        for corner in CORNERS:
            xs = [f['bounding_poly'][space][corner]['x'] for f in fragments]
            ys = [f['bounding_poly'][space][corner]['y'] for f in fragments]
            corners[corner] = {
                'x': min(xs) if corner in _MIN_X else max(xs),
                'y': min(ys) if corner in _MIN_Y else max(ys),
            }
        poly[space] = corners
    return poly


def _bottom_y(fragment: Dict) -> float:
    return fragment['bounding_poly']['normalized_vertices']['bottom_left']['y']


def _left_x(fragment: Dict) -> float:
    return fragment['bounding_poly']['normalized_vertices']['bottom_left']['x']


def sort_fragments_by_x(line: Dict) -> List[Dict]:
    """Fragments of a line in left-to-right order"""
    return sorted(line['fragments'], key=_left_x)


def sort_fragments_visually(fragments: List[Dict], threshold: float = LINE_Y_THRESHOLD) -> List[Dict]:
    """
    Order one page's fragments top-to-bottom, then left-to-right within a line band.
    """
    ordered = sorted(fragments, key=_bottom_y)
    bands = []
    for fragment in ordered:
        if bands and _bottom_y(fragment) - _bottom_y(bands[-1][0]) <= threshold:
            bands[-1].append(fragment)
        else:
            bands.append([fragment])
    return [fragment for band in bands for fragment in sorted(band, key=_left_x)]


# ============ TEXT HELPERS ============

def strip_text(text: str) -> str:
    """Collapse whitespace (OCR text often carries trailing newlines)"""
    return re.sub(r'\s+', ' ', text or '').strip()


def line_texts(line: Dict) -> List[str]:
    """Stripped text of every non-empty fragment in the line"""
    texts = [strip_text(f['text']) for f in line['fragments']]
    return [t for t in texts if t]


def line_text(line: Dict) -> str:
    return ' '.join(line_texts(line))


# ============ GEOMETRY HELPERS ============

def is_within_range(coordinates: Dict, axis: str, start: float, end: float) -> bool:
    """Check that all four corners lie between start and end on the given axis"""
    return all(start <= coordinates[corner][axis] <= end for corner in CORNERS)


def is_fragment_within_region(fragment: Dict, x_range: Tuple[float, float],
                              y_range: Tuple[float, float]) -> bool:
    coordinates = fragment['bounding_poly']['normalized_vertices']
    return (is_within_range(coordinates, 'x', *x_range)
            and is_within_range(coordinates, 'y', *y_range))


def lines_within_region(page_lines: List[Dict], x_range: Tuple[float, float],
                        y_range: Tuple[float, float]) -> List[Dict]:
    """
    Restrict lines to the fragments inside a normalized rectangle.

    Returns:
        New line records holding only the fragments inside the region;
        lines with no such fragment are dropped
    """
    result = []
    for line in page_lines:
        inside = [f for f in line['fragments'] if is_fragment_within_region(f, x_range, y_range)]
        if inside:
            result.append(build_line(line['page'], inside))
    return result


def texts_within_region(page_lines: List[Dict], x_range: Tuple[float, float],
                        y_range: Tuple[float, float]) -> List[str]:
    """Joined text of each line's fragments that fall inside the region"""
    texts = [line_text(line) for line in lines_within_region(page_lines, x_range, y_range)]
    return [t for t in texts if t]


def first_page(lines: List[List[Dict]]) -> List[Dict]:
    return lines[0] if lines else []
