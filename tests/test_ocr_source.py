import json

import pytest

from parsers.ocr_source import (FragmentSource, DocumentOpenError, EmptyDocumentError,
                                fragments_from_document_response, make_fragment, count_fragments)


def _layout(start, end, x0, y0, x1, y1):
    segment = {'endIndex': str(end)}
    if start:
        segment['startIndex'] = str(start)
    return {
        'textAnchor': {'textSegments': [segment]},
        'boundingPoly': {
            # top-left, top-right, bottom-right, bottom-left
            'vertices': [{'x': x0 * 600, 'y': y0 * 800}, {'x': x1 * 600, 'y': y0 * 800},
                         {'x': x1 * 600, 'y': y1 * 800}, {'x': x0 * 600, 'y': y1 * 800}],
            'normalizedVertices': [{'x': x0, 'y': y0}, {'x': x1, 'y': y0},
                                   {'x': x1, 'y': y1}, {'x': x0, 'y': y1}],
        },
    }


@pytest.fixture
def document_response():
    return {
        'document': {
            'text': 'Chase.com\nTotal Fees\nSecond page\n',
            'pages': [
                {'lines': [
                    {'layout': _layout(10, 21, 0.1, 0.49, 0.3, 0.5)},
                    {'layout': _layout(0, 10, 0.1, 0.09, 0.2, 0.1)},
                    {'layout': {'textAnchor': {'textSegments': [{'endIndex': '3'}]}}},
                ]},
                {'lines': [{'layout': _layout(21, 33, 0.1, 0.09, 0.3, 0.1)}]},
            ],
        }
    }


def test_document_response_to_fragments(document_response):
    pages = fragments_from_document_response(document_response)

    assert len(pages) == 2
    # Sorted top to bottom; the line without a bounding polygon is skipped
    assert [f['text'] for f in pages[0]] == ['Chase.com\n', 'Total Fees\n']
    assert pages[0][0]['indices'] == {'start': 0, 'end': 10}
    assert pages[1][0]['page'] == 1
    assert pages[1][0]['text'] == 'Second page\n'


def test_document_response_vertex_order(document_response):
    fragment = fragments_from_document_response(document_response['document'])[0][0]

    normalized = fragment['bounding_poly']['normalized_vertices']
    assert normalized['top_left'] == {'x': 0.1, 'y': 0.09}
    assert normalized['top_right'] == {'x': 0.2, 'y': 0.09}
    assert normalized['bottom_right'] == {'x': 0.2, 'y': 0.1}
    assert normalized['bottom_left'] == {'x': 0.1, 'y': 0.1}
    assert fragment['bounding_poly']['vertices']['bottom_right'] == {'x': 0.2 * 600, 'y': 0.1 * 800}


def test_document_response_without_sorting(document_response):
    pages = fragments_from_document_response(document_response, sort_visually=False)

    assert [f['text'] for f in pages[0]] == ['Total Fees\n', 'Chase.com\n']


def test_make_fragment_normalizes():
    fragment = make_fragment('Deposit', 0, 0, 7, {'x0': 60, 'x1': 120, 'top': 80, 'bottom': 96}, 600, 800)

    normalized = fragment['bounding_poly']['normalized_vertices']
    assert normalized['top_left'] == {'x': 0.1, 'y': 0.1}
    assert normalized['bottom_right'] == {'x': 0.2, 'y': 0.12}


def test_load_response_then_cache(tmp_path, document_response):
    path = tmp_path / 'statement.json'
    path.write_text(json.dumps(document_response))
    source = FragmentSource(cache_dir=str(tmp_path / 'cache'), use_cache=True)

    pages = source.load(str(path))
    assert source.last_method == 'response'
    assert count_fragments(pages) == 3

    cached = source.load(str(path))
    assert source.last_method == 'cache'
    assert cached == pages


def test_load_page_grouped_fragments(tmp_path, chase_pages):
    path = tmp_path / 'fragments.json'
    path.write_text(json.dumps(chase_pages))

    pages = FragmentSource(use_cache=False).load(str(path))

    assert pages == chase_pages


def test_load_empty_document(tmp_path):
    path = tmp_path / 'empty.json'
    path.write_text(json.dumps([[], []]))

    with pytest.raises(EmptyDocumentError):
        FragmentSource(use_cache=False).load(str(path))


def test_load_invalid_response(tmp_path):
    path = tmp_path / 'broken.json'
    path.write_text('{not json')

    with pytest.raises(DocumentOpenError):
        FragmentSource(use_cache=False).load(str(path))


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        FragmentSource(use_cache=False).load(str(tmp_path / 'missing.pdf'))


def test_unreadable_pdf_raises_document_open_error(tmp_path):
    path = tmp_path / 'statement.pdf'
    path.write_bytes(b'this is not a pdf')

    with pytest.raises(DocumentOpenError):
        FragmentSource(use_cache=False).load(str(path))
