"""
VTK Export
==========

Builds a vtkUnstructuredGrid from a Mesh for visualization. Node ids in the
mesh are 1-based; VTK point ids are 0-based, so every id is shifted by one.
Only linear cells are emitted; quadratic kinds are skipped.
"""

import logging
from typing import Dict, List, Type

import numpy as np
import vtk
from vtkmodules.util.numpy_support import numpy_to_vtk
from vtkmodules.vtkCommonDataModel import (
    vtkCell, vtkHexahedron, vtkLine, vtkQuad, vtkTetra, vtkTriangle, vtkUnstructuredGrid, vtkWedge,
)

from element_types import ElementKind
from gmsh_mesh import Mesh

logger = logging.getLogger(__name__)

VTK_CELLS: Dict[ElementKind, Type[vtkCell]] = {
    ElementKind.LINE_2: vtkLine,
    ElementKind.TRI_3: vtkTriangle,
    ElementKind.QUAD_4: vtkQuad,
    ElementKind.TET_4: vtkTetra,
    ElementKind.HEXA_8: vtkHexahedron,
    ElementKind.PRISM_6: vtkWedge,
}


def _int_array(name: str, values: List[int]) -> vtk.vtkIntArray:
    a = vtk.vtkIntArray()
    a.SetName(name)
    a.SetNumberOfComponents(1)
    a.SetNumberOfTuples(len(values))
    for i, v in enumerate(values):
        a.SetValue(i, int(v))
    return a


def mesh_to_vtk_grid(mesh: Mesh, x_offset: float = 0.0, y_offset: float = 0.0,
                     z_offset: float = 0.0) -> vtkUnstructuredGrid:
    """Create a VTK unstructured grid from a mesh

    Args:
        mesh: Source mesh; node ids are expected to be 1..N in node order
        x_offset, y_offset, z_offset: Shift applied to every point

    Returns:
        Grid with one point per node and one cell per supported element,
        plus ``ElementId`` and ``PhysicalTag`` cell arrays
    """
    output = vtkUnstructuredGrid()

    coords = mesh.points() + np.array([x_offset, y_offset, z_offset], dtype=np.float64)
    points = vtk.vtkPoints()
    if len(coords):
        points.SetData(numpy_to_vtk(coords, deep=1))
    output.SetPoints(points)

    element_ids: List[int] = []
    physical_tags: List[int] = []
    skipped = 0
    for element in mesh.elements:
        cell_class = VTK_CELLS.get(element.kind)
        if cell_class is None:
            skipped += 1
            continue
        cell = cell_class()
        for j, node_id in enumerate(element.node_ids):
            cell.GetPointIds().SetId(j, node_id - 1)
        output.InsertNextCell(cell.GetCellType(), cell.GetPointIds())
        element_ids.append(element.id)
        physical_tags.append(element.physical_tag)

    if skipped:
        logger.debug("Skipped %d elements without a linear VTK cell", skipped)

    output.GetCellData().AddArray(_int_array("ElementId", element_ids))
    output.GetCellData().AddArray(_int_array("PhysicalTag", physical_tags))
    return output
