"""
GMSH Mesh Model and Writer
==========================

In-memory mesh (nodes, elements, optional per-node data sets) and its
serialization to the GMSH text formats:

1. MSH 1   ($NOD / $ELM sections, no node data)
2. MSH 2.2 ($MeshFormat / $Nodes / $Elements / $NodeData sections)

Also hosts the merge correction pass, which reclassifies elements whose
corner nodes were merged together (e.g. a hexahedron collapsed to a
tetrahedron) into the lower order kind their distinct nodes describe.

Usage:
    >>> mesh = Mesh.from_ansys('model.cdb', correct_merged=True)
    >>> mesh.convert_units(ConvertLengths('mm', 'm'))
    >>> mesh.write('model.msh', MeshFormat.MSH_2_2)
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from element_types import DEFAULT_REGISTRY, ElementKind, ElementTypeRegistry

logger = logging.getLogger(__name__)


class UnsupportedFormatError(ValueError):
    """Exception for unknown GMSH file format versions"""
    pass


class MeshFormat(Enum):
    """GMSH file format versions"""
    MSH_1 = "1"
    MSH_2_2 = "2.2"

    @classmethod
    def resolve(cls, version: Union["MeshFormat", str]) -> "MeshFormat":
        if isinstance(version, cls):
            return version
        try:
            return cls(str(version))
        except ValueError:
            raise UnsupportedFormatError(f"Unknown Mesh format {version}.") from None


def _format_float(value: float) -> str:
    # repr is locale independent and round-trips exactly
    return repr(float(value))


@dataclass
class Node:
    """Mesh node with a 1-based id"""
    id: int
    x: float
    y: float
    z: float

    @property
    def point(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def set_point(self, x: float, y: float, z: float) -> None:
        self.x, self.y, self.z = x, y, z

    def same_point(self, other: "Node", tolerance: float = 0.0) -> bool:
        """Check whether two nodes are coincident within ``tolerance`` per axis"""
        return all(abs(a - b) <= tolerance for a, b in
                   ((self.x, other.x), (self.y, other.y), (self.z, other.z)))

    def to_line(self) -> str:
        return f"{self.id} {_format_float(self.x)} {_format_float(self.y)} {_format_float(self.z)}"


@dataclass(frozen=True)
class Element:
    """Mesh element of any kind

    ``node_ids`` reference Node ids (1-based). Duplicate ids are allowed and
    mark a degenerate element produced by node merging.
    """
    id: int
    kind: ElementKind
    node_ids: Tuple[int, ...]
    elementary_tag: int
    physical_tag: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'node_ids', tuple(self.node_ids))

    @property
    def number_of_tags(self) -> int:
        return 1 if self.physical_tag == 0 else 2

    @property
    def number_of_nodes(self) -> int:
        return len(self.node_ids)

    def unique_node_ids(self) -> Tuple[int, ...]:
        """Distinct node ids, in order of first appearance"""
        return tuple(dict.fromkeys(self.node_ids))

    def to_line(self, version: MeshFormat, registry: ElementTypeRegistry = DEFAULT_REGISTRY) -> str:
        """Format the element as a line of the given GMSH version

        Args:
            version: Target file format
            registry: Tables providing the GMSH element code

        Returns:
            ``id code physical elementary n ids...`` for MSH 1,
            ``id code 2 physical elementary ids...`` for MSH 2.2
        """
        version = MeshFormat.resolve(version)
        code = registry.wire_code(self.kind, version.value)
        nodes = " ".join(str(n) for n in self.node_ids)
        if version is MeshFormat.MSH_1:
            return f"{self.id} {code} {self.physical_tag} {self.elementary_tag} {self.number_of_nodes} {nodes}"
        return f"{self.id} {code} 2 {self.physical_tag} {self.elementary_tag} {nodes}"


@dataclass(frozen=True)
class DataRecord:
    """Values attached to one entity (node) of the mesh"""
    entity_id: int
    components: Tuple[float, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'components', tuple(float(c) for c in self.components))

    @property
    def num_components(self) -> int:
        return len(self.components)

    def to_line(self) -> str:
        return " ".join([str(self.entity_id)] + [_format_float(c) for c in self.components])


@dataclass(frozen=True)
class NodeDataSet:
    """A $NodeData block: tags plus one record per node

    The integer tags follow the GMSH convention (time step, number of
    components, number of records). The set is sane when there are at least
    three integer tags and the records agree with them.
    """
    string_tags: Tuple[str, ...] = ()
    real_tags: Tuple[float, ...] = ()
    int_tags: Tuple[int, ...] = ()
    records: Tuple[DataRecord, ...] = ()
    sane: bool = field(init=False, default=False)

    def __post_init__(self):
        object.__setattr__(self, 'string_tags', tuple(self.string_tags))
        object.__setattr__(self, 'real_tags', tuple(self.real_tags))
        object.__setattr__(self, 'int_tags', tuple(self.int_tags))
        object.__setattr__(self, 'records', tuple(self.records))
        object.__setattr__(self, 'sane', self._sanity_check())

    def _sanity_check(self) -> bool:
        if len(self.int_tags) < 3:
            logger.warning("NodeDataSet: there must be at least 3 integer tags.")
            return False

        num_components = self.int_tags[1]
        num_records = self.int_tags[2]
        if any(r.num_components != num_components for r in self.records):
            logger.warning("NodeDataSet: not all records have %d components.", num_components)
            return False

        if len(self.records) != num_records:
            logger.warning("NodeDataSet: %d records found, %d expected.",
                           len(self.records), num_records)
            return False

        return True

    def lines(self) -> List[str]:
        """Tag counts, tags and records, or nothing if the set is not sane"""
        if not self.sane:
            return []
        lines = [str(len(self.string_tags))]
        lines.extend(f'"{tag}"' for tag in self.string_tags)
        lines.append(str(len(self.real_tags)))
        lines.extend(_format_float(tag) for tag in self.real_tags)
        lines.append(str(len(self.int_tags)))
        lines.extend(str(tag) for tag in self.int_tags)
        lines.extend(record.to_line() for record in self.records)
        return lines


@dataclass
class CorrectionReport:
    """Outcome of a merge correction pass"""
    elements: List[Element]
    corrected: int = 0
    skipped: List[Tuple[Element, int, int]] = field(default_factory=list)


def correct_merged_elements(elements: Sequence[Element],
                            registry: ElementTypeRegistry = DEFAULT_REGISTRY) -> CorrectionReport:
    """Reclassify elements whose nodes were merged

    An element of a correctable kind whose distinct node count equals the
    nominal count of its corrected kind is replaced by an element of that
    kind over the distinct nodes (same id and tags). Elements whose distinct
    count matches neither kind are kept as they are and listed in
    ``skipped`` as ``(element, distinct count, expected count)``.

    Args:
        elements: Elements to scan; not modified
        registry: Tables providing node counts and the correction map

    Returns:
        CorrectionReport holding the new element list
    """
    report = CorrectionReport(elements=[])

    for element in elements:
        corrected_kind = registry.corrected_kind(element.kind)
        if corrected_kind is None:
            report.elements.append(element)
            continue

        unique_ids = element.unique_node_ids()
        if len(unique_ids) == registry.node_count(element.kind):
            report.elements.append(element)
            continue

        expected = registry.node_count(corrected_kind)
        if len(unique_ids) == expected:
            report.elements.append(replace(element, kind=corrected_kind, node_ids=unique_ids))
            report.corrected += 1
        else:
            report.elements.append(element)
            report.skipped.append((element, len(unique_ids), expected))

    return report


class Mesh:
    """Nodes, elements and optional node data of a GMSH mesh

    Element node ids reference nodes by id. Meshes imported from ANSYS
    have node ids 1..N in file order; meshes built by hand are not checked.
    """

    def __init__(self, nodes: Optional[List[Node]] = None, elements: Optional[List[Element]] = None,
                 node_data: Optional[List[NodeDataSet]] = None,
                 registry: ElementTypeRegistry = DEFAULT_REGISTRY):
        self.nodes: List[Node] = list(nodes) if nodes else []
        self.elements: List[Element] = list(elements) if elements else []
        self.node_data: Optional[List[NodeDataSet]] = list(node_data) if node_data is not None else None
        self.registry = registry

    @classmethod
    def from_ansys(cls, filename: Union[str, Path], correct_merged: bool = False,
                   registry: ElementTypeRegistry = DEFAULT_REGISTRY) -> "Mesh":
        """Import an ANSYS archive (NBLOCK/EBLOCK), optionally correcting merged elements"""
        from ansys_parser import AnsysParser

        parser = AnsysParser(filename, registry=registry)
        return parser.parse_all(correct_merged=correct_merged)

    def __repr__(self) -> str:
        return f"Mesh(nodes={len(self.nodes)}, elements={len(self.elements)})"

    # Coordinate transforms

    def convert_units(self, converter) -> None:
        """Scale every node coordinate in place with a ConvertLengths instance"""
        for node in self.nodes:
            node.set_point(converter.convert(node.x), converter.convert(node.y), converter.convert(node.z))

    def translate(self, dx: float = 0.0, dy: float = 0.0, dz: float = 0.0) -> None:
        for node in self.nodes:
            node.set_point(node.x + dx, node.y + dy, node.z + dz)

    # Queries

    def points(self) -> np.ndarray:
        """Node coordinates as an (N, 3) array in node order"""
        if not self.nodes:
            return np.zeros((0, 3), dtype=np.float64)
        return np.array([(n.x, n.y, n.z) for n in self.nodes], dtype=np.float64)

    def find_nearest_node(self, point: Sequence[float]) -> Node:
        """Node closest to ``point``; the first one wins on ties

        Raises:
            ValueError: If the mesh has no nodes
        """
        if not self.nodes:
            raise ValueError("Mesh has no nodes")
        target = np.asarray(point, dtype=np.float64)
        distances = np.linalg.norm(self.points() - target, axis=1)
        # argmin returns the first minimum
        return self.nodes[int(np.argmin(distances))]

    def vtk_grid(self, x_offset: float = 0.0, y_offset: float = 0.0, z_offset: float = 0.0):
        """vtkUnstructuredGrid of the linear elements, see gmsh_vtk.mesh_to_vtk_grid"""
        from gmsh_vtk import mesh_to_vtk_grid

        return mesh_to_vtk_grid(self, x_offset, y_offset, z_offset)

    def element_kind_counts(self) -> Dict[ElementKind, int]:
        counts: Dict[ElementKind, int] = {}
        for element in self.elements:
            counts[element.kind] = counts.get(element.kind, 0) + 1
        return counts

    # Correction

    def correct_merged_elements(self) -> int:
        """Apply the merge correction to this mesh and return the number of corrected elements"""
        logger.info("Correcting merged elements...")
        report = correct_merged_elements(self.elements, self.registry)
        for element, found, expected in report.skipped:
            logger.warning("Input element id %d has %d unique nodes, inconsistent with corrected "
                           "element that expects %d unique nodes. Skipping.", element.id, found, expected)
        self.elements = report.elements
        logger.info("Corrected %d elements.", report.corrected)
        return report.corrected

    # Output

    def to_lines(self, version: Union[MeshFormat, str] = MeshFormat.MSH_1) -> List[str]:
        """Build the GMSH file content as a list of lines

        Raises:
            UnsupportedFormatError: If ``version`` is not a known format
        """
        version = MeshFormat.resolve(version)
        element_lines = [e.to_line(version, self.registry) for e in self.elements]
        node_lines = [n.to_line() for n in self.nodes]

        if version is MeshFormat.MSH_1:
            lines = ["$NOD", str(len(self.nodes))]
            lines.extend(node_lines)
            lines.extend(["$ENDNOD", "$ELM", str(len(self.elements))])
            lines.extend(element_lines)
            lines.extend(["$ENDELM", ""])
            if self.node_data:
                logger.warning("GMSH version 1 does not support data in the msh file. Skipping node data.")
            return lines

        lines = ["$MeshFormat", "2.2 0 8", "$EndMeshFormat", "$Nodes", str(len(self.nodes))]
        lines.extend(node_lines)
        lines.extend(["$EndNodes", "$Elements", str(len(self.elements))])
        lines.extend(element_lines)
        lines.append("$EndElements")
        if self.node_data:
            lines.append("$NodeData")
            for data_set in self.node_data:
                lines.extend(data_set.lines())
            lines.append("$EndNodeData")
        lines.append("")
        return lines

    def write(self, filename: Union[str, Path], version: Union[MeshFormat, str] = MeshFormat.MSH_1) -> Path:
        """Write the mesh to ``filename``; nothing is written if the format is unknown"""
        lines = self.to_lines(version)
        path = Path(filename)
        with open(path, 'w', encoding='utf-8', newline='\n') as f:
            f.write("\n".join(lines) + "\n")
        logger.info("Wrote %d nodes and %d elements to %s", len(self.nodes), len(self.elements), path)
        return path
