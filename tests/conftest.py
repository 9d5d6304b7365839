"""
Shared fixtures: ANSYS archive text built with the same fixed-width layout
CDWRITE uses ((3i9,6e21.13e3) node records, (19i9) element records).
"""

import logging

import pytest


UNIT_CUBE = [
    (0.0, 0.0, 0.0),
    (1.0, 0.0, 0.0),
    (1.0, 1.0, 0.0),
    (0.0, 1.0, 0.0),
    (0.0, 0.0, 1.0),
    (1.0, 0.0, 1.0),
    (1.0, 1.0, 1.0),
    (0.0, 1.0, 1.0),
]


def node_line(number, x, y, z):
    return f"{number:9d}{0:9d}{0:9d}{x:21.13E}{y:21.13E}{z:21.13E}"


def element_lines(type_id, tag, element_id, node_ids):
    """Solid EBLOCK record; node ids beyond the eighth go on a continuation line"""
    header = [1, type_id, tag, 1, 0, 0, 0, 0, len(node_ids), 0, element_id]
    first = header + list(node_ids[:8])
    lines = ["".join(f"{v:9d}" for v in first)]
    if len(node_ids) > 8:
        lines.append("".join(f"{v:9d}" for v in node_ids[8:]))
    return lines


def build_cdb(nodes, elements, element_types, node_terminator="N,R5.3,LOC,       -1,",
              types_after_nodes=False, element_terminator=True):
    """Assemble an archive

    Args:
        nodes: (x, y, z) tuples
        elements: (type_id, tag, element_id, node_ids) tuples
        element_types: (type_id, name) tuples declared with ET
    """
    et_lines = [f"ET,{type_id:8d},{name}" for type_id, name in element_types]
    lines = ["/COM,ANSYS RELEASE 2021 R1", "/PREP7"]
    if not types_after_nodes:
        lines.extend(et_lines)
    lines.append(f"NBLOCK,6,SOLID,{len(nodes):9d},{len(nodes):9d}")
    lines.append("(3i9,6e21.13e3)")
    # ANSYS node numbers are deliberately not 1..N
    lines.extend(node_line(10 * (i + 1), x, y, z) for i, (x, y, z) in enumerate(nodes))
    lines.append(node_terminator)
    if types_after_nodes:
        lines.extend(et_lines)
    lines.append(f"EBLOCK,19,SOLID,{len(elements):9d},{len(elements):9d}")
    lines.append("(19i9)")
    for element in elements:
        lines.extend(element_lines(*element))
    if element_terminator:
        lines.append(f"{-1:9d}")
    lines.append("/GO")
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_cdb():
    return build_cdb


@pytest.fixture
def make_element_lines():
    return element_lines


@pytest.fixture
def make_node_line():
    return node_line


@pytest.fixture
def cube_nodes():
    return list(UNIT_CUBE)


@pytest.fixture
def hexa_cdb_text(cube_nodes):
    """One SOLID185 brick over the eight cube corners"""
    return build_cdb(cube_nodes, [(1, 3, 1, [1, 2, 3, 4, 5, 6, 7, 8])], [(1, "185")])


@pytest.fixture
def hexa_cdb_path(tmp_path, hexa_cdb_text):
    path = tmp_path / "cube.cdb"
    path.write_text(hexa_cdb_text)
    return path


@pytest.fixture
def merged_cdb_path(tmp_path, cube_nodes):
    """Two bricks: one collapsed to four distinct nodes, one collapsed to five"""
    elements = [
        (1, 2, 1, [1, 2, 3, 3, 5, 5, 5, 5]),
        (1, 2, 2, [1, 2, 3, 4, 5, 5, 5, 5]),
    ]
    path = tmp_path / "merged.cdb"
    path.write_text(build_cdb(cube_nodes, elements, [(1, "SOLID185")]))
    return path


@pytest.fixture
def restore_root_logging():
    """Undo handler and level changes made by setup_logging"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
