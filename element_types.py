"""
Element Type Tables
===================

Static lookup data shared by the ANSYS reader and the GMSH writer:

1. ANSYS element routine name -> canonical element kind
2. Element kind -> nominal number of nodes
3. Element kind -> GMSH element code (per file format version)
4. Merge correction table (degenerate kind -> kind it collapses to)

The tables are read-only mappings bundled into an ElementTypeRegistry, which
is handed to the parser, the corrector and the writer.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional


class ElementKind(Enum):
    """Canonical finite element cell types"""
    UNKNOWN = "unknown"
    LINE_2 = "line2"
    TRI_3 = "tri3"
    TRI_6 = "tri6"
    QUAD_4 = "quad4"
    QUAD_8 = "quad8"
    TET_4 = "tet4"
    TET_10 = "tet10"
    HEXA_8 = "hexa8"
    HEXA_20 = "hexa20"
    PRISM_6 = "prism6"


NODE_COUNTS: Mapping[ElementKind, int] = MappingProxyType({
    ElementKind.LINE_2: 2,
    ElementKind.TRI_3: 3,
    ElementKind.TRI_6: 6,
    ElementKind.QUAD_4: 4,
    ElementKind.QUAD_8: 8,
    ElementKind.TET_4: 4,
    ElementKind.TET_10: 10,
    ElementKind.HEXA_8: 8,
    ElementKind.HEXA_20: 20,
    ElementKind.PRISM_6: 6,
})

# GMSH uses the same element numbering in MSH 1 and MSH 2.2
_GMSH_CODES: Mapping[ElementKind, int] = MappingProxyType({
    ElementKind.LINE_2: 1,
    ElementKind.TRI_3: 2,
    ElementKind.QUAD_4: 3,
    ElementKind.TET_4: 4,
    ElementKind.HEXA_8: 5,
    ElementKind.PRISM_6: 6,
    ElementKind.TRI_6: 9,
    ElementKind.TET_10: 11,
    ElementKind.QUAD_8: 16,
    ElementKind.HEXA_20: 17,
})

WIRE_CODES: Mapping[str, Mapping[ElementKind, int]] = MappingProxyType({
    "1": _GMSH_CODES,
    "2.2": _GMSH_CODES,
})


def _names(kind: ElementKind, *names: str) -> Dict[str, ElementKind]:
    return {name: kind for name in names}


ANSYS_ELEMENT_NAMES: Mapping[str, ElementKind] = MappingProxyType({
    **_names(ElementKind.TRI_6, "PLANE35"),
    **_names(ElementKind.QUAD_4,
             "PLANE13", "PLANE25", "PLANE55", "PLANE75", "PLANE162", "PLANE182",
             "SHELL28", "SHELL41", "SHELL131", "SHELL157", "SHELL163", "SHELL181"),
    **_names(ElementKind.QUAD_8,
             "PLANE53", "PLANE77", "PLANE78", "PLANE83", "PLANE121", "PLANE183",
             "PLANE223", "PLANE230", "PLANE233", "PLANE238", "SHELL132", "SHELL281"),
    **_names(ElementKind.HEXA_8,
             "SOLID5", "SOLID65", "SOLID70", "SOLID96", "SOLID97", "SOLID164",
             "SOLID185", "SOLID278"),
    **_names(ElementKind.HEXA_20,
             "SOLID90", "SOLID122", "SOLID186", "SOLID226", "SOLID231", "SOLID236",
             "SOLID239", "SOLID279"),
    **_names(ElementKind.TET_4, "SOLID285"),
    **_names(ElementKind.TET_10,
             "SOLID87", "SOLID98", "SOLID123", "SOLID168", "SOLID187", "SOLID227",
             "SOLID232", "SOLID237", "SOLID240"),
})

MERGE_CORRECTIONS: Mapping[ElementKind, ElementKind] = MappingProxyType({
    ElementKind.QUAD_4: ElementKind.TRI_3,
    ElementKind.QUAD_8: ElementKind.TRI_6,
    ElementKind.HEXA_8: ElementKind.TET_4,
    ElementKind.HEXA_20: ElementKind.TET_10,
})

_ROUTINE_NUMBER = re.compile(r'^[A-Z]*(\d+)$')


@dataclass(frozen=True)
class ElementTypeRegistry:
    """Read-only view over the element type tables

    ANSYS writes element types either by name (``ET,1,SOLID185``) or by bare
    routine number (``ET,1,185``); both resolve to the same kind. Routine
    numbers are unique across the element families in the name table.

    Usage:
        >>> registry = ElementTypeRegistry()
        >>> registry.kind_for_name('SOLID185')
        <ElementKind.HEXA_8: 'hexa8'>
        >>> registry.wire_code(ElementKind.TET_10, '2.2')
        11
    """
    vendor_names: Mapping[str, ElementKind] = field(default_factory=lambda: ANSYS_ELEMENT_NAMES)
    node_counts: Mapping[ElementKind, int] = field(default_factory=lambda: NODE_COUNTS)
    wire_codes: Mapping[str, Mapping[ElementKind, int]] = field(default_factory=lambda: WIRE_CODES)
    corrections: Mapping[ElementKind, ElementKind] = field(default_factory=lambda: MERGE_CORRECTIONS)

    def __post_init__(self):
        by_number = {}
        for name, kind in self.vendor_names.items():
            match = _ROUTINE_NUMBER.match(name.upper())
            if match:
                by_number[match.group(1)] = kind
        object.__setattr__(self, '_by_number', MappingProxyType(by_number))
        upper = {name.upper(): kind for name, kind in self.vendor_names.items()}
        object.__setattr__(self, '_by_name', MappingProxyType(upper))

    def kind_for_name(self, name: str) -> ElementKind:
        """Resolve an ANSYS element name or routine number, UNKNOWN on a miss"""
        key = name.strip().upper()
        if key in self._by_name:
            return self._by_name[key]
        if key.isdigit():
            return self._by_number.get(str(int(key)), ElementKind.UNKNOWN)
        return ElementKind.UNKNOWN

    def node_count(self, kind: ElementKind) -> int:
        """Nominal node count; raises KeyError for UNKNOWN"""
        return self.node_counts[kind]

    def wire_code(self, kind: ElementKind, version: str) -> int:
        return self.wire_codes[version][kind]

    def kind_for_code(self, code: int, version: str) -> ElementKind:
        for kind, kind_code in self.wire_codes[version].items():
            if kind_code == code:
                return kind
        return ElementKind.UNKNOWN

    def corrected_kind(self, kind: ElementKind) -> Optional[ElementKind]:
        """Kind a merged element of ``kind`` collapses to, None if not correctable"""
        return self.corrections.get(kind)


DEFAULT_REGISTRY = ElementTypeRegistry()
