import numpy as np
import pytest

from element_types import ElementKind
from gmsh_mesh import Element, Mesh, Node


@pytest.fixture
def cube_mesh(cube_nodes):
    nodes = [Node(i, x, y, z) for i, (x, y, z) in enumerate(cube_nodes, start=1)]
    return Mesh(nodes, [Element(1, ElementKind.HEXA_8, tuple(range(1, 9)), 1, 1)])


def test_points(cube_mesh, cube_nodes):
    points = cube_mesh.points()

    assert points.shape == (8, 3)
    np.testing.assert_array_equal(points, np.array(cube_nodes))


def test_points_of_empty_mesh():
    assert Mesh().points().shape == (0, 3)


def test_find_nearest_node(cube_mesh):
    assert cube_mesh.find_nearest_node((0.9, 0.8, 1.2)).id == 7
    assert cube_mesh.find_nearest_node([0.0, 0.0, 0.0]).id == 1


def test_find_nearest_node_first_wins_on_ties():
    mesh = Mesh([Node(1, 1.0, 0.0, 0.0), Node(2, -1.0, 0.0, 0.0)])
    assert mesh.find_nearest_node((0.0, 0.0, 0.0)).id == 1


def test_find_nearest_node_empty_mesh():
    with pytest.raises(ValueError):
        Mesh().find_nearest_node((0.0, 0.0, 0.0))


def test_translate(cube_mesh):
    cube_mesh.translate(dx=1.0, dz=-2.0)

    node = cube_mesh.nodes[6]
    assert (node.x, node.y, node.z) == (2.0, 1.0, -1.0)


def test_node_helpers():
    a = Node(1, 0.0, 0.0, 0.0)
    b = Node(2, 0.0, 1e-9, 0.0)

    assert a.same_point(b, tolerance=1e-6)
    assert not a.same_point(b)
    np.testing.assert_array_equal(b.point, [0.0, 1e-9, 0.0])

    a.set_point(1.0, 2.0, 3.0)
    assert a.to_line() == "1 1.0 2.0 3.0"


def test_element_helpers():
    element = Element(5, ElementKind.QUAD_4, [4, 4, 2, 1], 1)

    assert element.node_ids == (4, 4, 2, 1)
    assert element.number_of_nodes == 4
    assert element.unique_node_ids() == (4, 2, 1)
    assert element.physical_tag == 0


def test_element_kind_counts(cube_mesh):
    cube_mesh.elements.append(Element(2, ElementKind.TET_4, (1, 2, 3, 5), 1, 1))
    cube_mesh.elements.append(Element(3, ElementKind.TET_4, (2, 3, 4, 8), 1, 1))

    assert cube_mesh.element_kind_counts() == {ElementKind.HEXA_8: 1, ElementKind.TET_4: 2}


def test_repr(cube_mesh):
    assert repr(cube_mesh) == "Mesh(nodes=8, elements=1)"
