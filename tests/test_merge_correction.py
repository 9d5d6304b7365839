"""
Merge correction: elements collapsed by node merging are reclassified to the
lower order kind their distinct nodes describe.
"""

import logging

import pytest

from element_types import ElementKind
from gmsh_mesh import Element, Mesh, Node, correct_merged_elements


def hexa(element_id, node_ids, tag=4):
    return Element(element_id, ElementKind.HEXA_8, tuple(node_ids), tag, tag)


def test_collapsed_hexahedron_becomes_tetrahedron():
    report = correct_merged_elements([hexa(1, [1, 2, 3, 3, 5, 5, 5, 5])])

    assert report.corrected == 1
    assert report.skipped == []
    element = report.elements[0]
    assert element.kind is ElementKind.TET_4
    assert element.node_ids == (1, 2, 3, 5)


def test_distinct_nodes_keep_first_appearance_order():
    report = correct_merged_elements([hexa(1, [7, 7, 3, 3, 1, 1, 9, 9])])
    assert report.elements[0].node_ids == (7, 3, 1, 9)


def test_id_and_tags_are_preserved():
    element = Element(42, ElementKind.HEXA_8, (1, 2, 3, 3, 5, 5, 5, 5), 6, 11)

    corrected = correct_merged_elements([element]).elements[0]

    assert corrected.id == 42
    assert corrected.elementary_tag == 6
    assert corrected.physical_tag == 11


def test_five_distinct_nodes_are_left_alone():
    element = hexa(3, [1, 2, 3, 4, 5, 5, 5, 5])

    report = correct_merged_elements([element])

    assert report.corrected == 0
    assert report.elements == [element]
    assert report.skipped == [(element, 5, 4)]


def test_intact_elements_are_not_reported():
    element = hexa(1, range(1, 9))

    report = correct_merged_elements([element])

    assert report.elements == [element]
    assert report.corrected == 0
    assert report.skipped == []


@pytest.mark.parametrize("kind, node_ids, expected_kind, expected_ids", [
    (ElementKind.QUAD_4, (1, 2, 3, 3), ElementKind.TRI_3, (1, 2, 3)),
    (ElementKind.QUAD_8, (1, 2, 3, 3, 4, 5, 6, 6), ElementKind.TRI_6, (1, 2, 3, 4, 5, 6)),
    (ElementKind.HEXA_20, tuple(range(1, 11)) * 2, ElementKind.TET_10, tuple(range(1, 11))),
])
def test_correctable_kinds(kind, node_ids, expected_kind, expected_ids):
    report = correct_merged_elements([Element(1, kind, node_ids, 1, 1)])

    assert report.corrected == 1
    assert report.elements[0].kind is expected_kind
    assert report.elements[0].node_ids == expected_ids


def test_kinds_without_correction_pass_through():
    tet = Element(1, ElementKind.TET_4, (1, 2, 2, 3), 1, 1)
    line = Element(2, ElementKind.LINE_2, (5, 5), 1, 1)

    report = correct_merged_elements([tet, line])

    assert report.elements == [tet, line]
    assert report.corrected == 0


def test_correction_is_idempotent():
    elements = [hexa(1, [1, 2, 3, 3, 5, 5, 5, 5]), hexa(2, [1, 2, 3, 4, 5, 5, 5, 5]), hexa(3, range(1, 9))]

    once = correct_merged_elements(elements).elements
    twice = correct_merged_elements(once)

    assert twice.elements == once
    assert twice.corrected == 0


def test_input_is_not_modified():
    elements = [hexa(1, [1, 2, 3, 3, 5, 5, 5, 5])]
    snapshot = list(elements)

    correct_merged_elements(elements)

    assert elements == snapshot
    assert elements[0].kind is ElementKind.HEXA_8


def test_mesh_correction_logs_skipped_elements(caplog):
    nodes = [Node(i, float(i), 0.0, 0.0) for i in range(1, 9)]
    mesh = Mesh(nodes, [hexa(1, [1, 2, 3, 3, 5, 5, 5, 5]), hexa(2, [1, 2, 3, 4, 5, 5, 5, 5])])

    with caplog.at_level(logging.WARNING, logger="gmsh_mesh"):
        corrected = mesh.correct_merged_elements()

    assert corrected == 1
    assert mesh.element_kind_counts() == {ElementKind.TET_4: 1, ElementKind.HEXA_8: 1}
    assert "Input element id 2 has 5 unique nodes" in caplog.text


def test_from_ansys_with_correction(merged_cdb_path):
    with pytest.warns(UserWarning):
        mesh = Mesh.from_ansys(merged_cdb_path, correct_merged=True)

    assert [e.kind for e in mesh.elements] == [ElementKind.TET_4, ElementKind.HEXA_8]
    assert mesh.elements[0].physical_tag == 2


def test_from_ansys_without_correction_keeps_duplicates(merged_cdb_path):
    mesh = Mesh.from_ansys(merged_cdb_path)

    assert mesh.elements[0].kind is ElementKind.HEXA_8
    assert mesh.elements[0].node_ids == (1, 2, 3, 3, 5, 5, 5, 5)
