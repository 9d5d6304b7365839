#!/usr/bin/env python3
"""
ANSYS Mesh File Parser
======================

A parser for the mesh portion of ANSYS archive files (.cdb / .inp) written by
CDWRITE or Workbench.

This script provides:
1. Node block (NBLOCK) decoding using the embedded fixed-width format descriptor
2. Element type (ET) resolution and element block (EBLOCK) decoding
3. Optional correction of elements degenerated by node merging
4. A concise mesh report and statistics export

Only the "solid" EBLOCK record layout is supported:
    mat type real secnum esys death solidref shape nnodes 0 elemid n1 n2 ...
Records holding more node ids than fit on one line continue on the next line.

Usage:
    python3 ansys_parser.py <cdb_file>
    python3 ansys_parser.py model.cdb --correct-merged
    python3 ansys_parser.py model.cdb --export-stats stats.json
    python3 ansys_parser.py model.cdb --show-issues
    python3 ansys_parser.py model.cdb --strict

Options:
    --correct-merged Reclassify degenerate (merged) elements
    --show-issues    Display parsing warnings and errors
    --strict         Fail on any per-record anomaly (no error recovery)
    --export-stats   Export statistics to JSON file
"""

import argparse
import json
import logging
import re
import sys
import warnings
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from element_types import DEFAULT_REGISTRY, ElementKind, ElementTypeRegistry
from gmsh_mesh import Element, Mesh, Node, correct_merged_elements

logger = logging.getLogger(__name__)

NODE_BLOCK_MARKER = "NBLOCK"
NODE_BLOCK_END = ("N", "-1")
ELEMENT_TYPE_MARKER = "ET"
ELEMENT_BLOCK_MARKER = "EBLOCK"
ELEMENT_BLOCK_END = "-1"

# Field positions in a solid EBLOCK record
TYPE_FIELD = 1
TAG_FIELD = 2
NODE_COUNT_FIELD = 8
ELEMENT_ID_FIELD = 10
FIRST_NODE_FIELD = 11


class ParseError(Exception):
    """Base exception for parsing errors"""
    pass


class MalformedInputError(ParseError):
    """Exception for missing markers, bad descriptors or truncated blocks"""
    pass


class FieldFormatError(ParseError, ValueError):
    """Exception for fixed-width fields that are not numbers"""
    pass


class DataInconsistencyError(ParseError):
    """Exception for per-record anomalies in strict mode"""
    pass


class ParseWarning(UserWarning):
    """Warning for non-critical parsing issues"""
    pass


class ParseResult(Enum):
    """Result status for parsing operations"""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class RecordScanner:
    """Ordered lines with a cursor

    Usage:
        >>> scanner = RecordScanner(['ET,1,185', 'NBLOCK,6,SOLID', '(3i9,6e21.13e3)'])
        >>> scanner.advance_until('NBLOCK')
        'NBLOCK,6,SOLID'
        >>> scanner.position
        2
    """

    def __init__(self, lines: Sequence[str], position: int = 0):
        self.lines = list(lines)
        self.position = position

    def __len__(self) -> int:
        return len(self.lines)

    def __getitem__(self, index: int) -> str:
        return self.lines[index]

    @property
    def at_end(self) -> bool:
        return self.position >= len(self.lines)

    @staticmethod
    def tokenize(line: str, delimiters: str = ',') -> List[str]:
        """Split a line on any of the delimiter characters, dropping empty tokens"""
        pattern = '[' + re.escape(delimiters) + ']+'
        return [token for token in re.split(pattern, line.strip()) if token]

    @staticmethod
    def first_token(line: str, delimiters: str = ',') -> str:
        tokens = RecordScanner.tokenize(line, delimiters)
        return tokens[0].strip() if tokens else ""

    def next_line(self) -> str:
        """Return the line under the cursor and move past it"""
        if self.at_end:
            raise MalformedInputError(f"Unexpected end of input at line {self.position + 1}")
        line = self.lines[self.position]
        self.position += 1
        return line

    def advance_until(self, token: str, delimiters: str = ',',
                      on_line: Optional[Callable[[str, List[str]], None]] = None) -> str:
        """Move past the first line whose first token equals ``token``

        Args:
            token: Token to look for (case-insensitive)
            delimiters: Characters separating tokens
            on_line: Called with every line and its tokens before the match test

        Returns:
            The matching line

        Raises:
            MalformedInputError: If the input ends before a match
        """
        wanted = token.upper()
        while not self.at_end:
            line = self.next_line()
            tokens = self.tokenize(line, delimiters)
            if on_line is not None:
                on_line(line, tokens)
            if tokens and tokens[0].strip().upper() == wanted:
                return line
        raise MalformedInputError(f"No {token} line found before end of input")


_DESCRIPTOR = re.compile(
    r'^\(\s*(\d+)\s*i\s*(\d+)\s*'
    r'(?:,\s*(\d+)\s*e\s*(\d+)(?:\.(\d+))?(?:e\d+)?\s*)?\)$',
    re.IGNORECASE,
)


@dataclass(frozen=True)
class FormatDescriptor:
    """Fortran-style record layout such as ``(3i9,6e21.13e3)`` or ``(19i9)``"""
    int_count: int
    int_width: int
    float_count: Optional[int] = None
    float_width: Optional[int] = None

    @property
    def int_block_width(self) -> int:
        return self.int_count * self.int_width

    @property
    def has_floats(self) -> bool:
        return self.float_width is not None

    @classmethod
    def parse(cls, line: str) -> "FormatDescriptor":
        match = _DESCRIPTOR.match(line.strip())
        if not match:
            raise MalformedInputError(f"Invalid format descriptor: '{line.strip()}'")
        int_count, int_width, float_count, float_width, _ = match.groups()
        return cls(
            int_count=int(int_count),
            int_width=int(int_width),
            float_count=int(float_count) if float_count else None,
            float_width=int(float_width) if float_width else None,
        )


def parse_fixed_float(text: str) -> float:
    """Parse a Fortran real field with a decimal point"""
    try:
        return float(text.strip().replace('D', 'E').replace('d', 'e'))
    except ValueError:
        raise FieldFormatError(f"Invalid numeric field: '{text}'") from None


def decode_fixed_width(line: str, int_block_width: int, float_width: int, field_count: int) -> List[float]:
    """Cut ``field_count`` real fields out of a fixed-width record

    Args:
        line: Record text
        int_block_width: Characters of leading integer fields to skip
        float_width: Width of each real field
        field_count: Number of real fields to read

    Returns:
        The decoded values; fields past the end of the line read as 0.0
    """
    data = line.rstrip('\r\n')[int_block_width:]
    values = []
    for i in range(field_count):
        chunk = data[i * float_width:(i + 1) * float_width]
        if not chunk:
            values.append(0.0)
            continue
        values.append(parse_fixed_float(chunk))
    return values


class AnsysParser:
    """Main parser for ANSYS mesh archives

    This parser reads NBLOCK / ET / EBLOCK sections of an ANSYS archive file
    and builds a Mesh:
    - Nodes are numbered 1..N in file order (ANSYS node numbers are ignored)
    - Element types declared with ET are resolved through the registry
    - Elements of unknown types are dropped with a warning
    - Merged elements can be reclassified (e.g. collapsed HEXA_8 -> TET_4)

    Usage - Basic parsing:
        >>> parser = AnsysParser('model.cdb')
        >>> mesh = parser.parse_all(correct_merged=True)
        >>> parser.print_concise_report()

    Usage - Parse lines held in memory:
        >>> mesh = AnsysParser().parse_lines(text.splitlines())
    """

    def __init__(self, filepath: Optional[Union[str, Path]] = None,
                 registry: ElementTypeRegistry = DEFAULT_REGISTRY, strict_mode: bool = False):
        """Initialize parser with file path"""
        self.filepath = Path(filepath) if filepath is not None else None
        self.registry = registry
        self.strict_mode = strict_mode
        self._reset()

    def _reset(self) -> None:
        """Clear the state of a previous parse"""
        self.mesh: Optional[Mesh] = None
        self.element_types: Dict[int, ElementKind] = {}
        self.element_type_names: Dict[int, str] = {}
        self.discarded_elements: int = 0
        self.corrected_elements: int = 0
        self.parse_warnings: List[str] = []
        self.parse_errors: List[str] = []
        self.parse_status: ParseResult = ParseResult.SUCCESS

    def _add_warning(self, message: str, line_num: Optional[int] = None) -> None:
        """Add a warning to the warnings list"""
        warning_msg = f"Line {line_num}: {message}" if line_num else message
        if self.strict_mode:
            self._add_error(warning_msg)
            raise DataInconsistencyError(warning_msg)
        self.parse_warnings.append(warning_msg)
        if self.parse_status == ParseResult.SUCCESS:
            self.parse_status = ParseResult.WARNING
        warnings.warn(warning_msg, ParseWarning)

    def _add_error(self, message: str, line_num: Optional[int] = None) -> None:
        """Add an error to the errors list"""
        error_msg = f"Line {line_num}: {message}" if line_num else message
        self.parse_errors.append(error_msg)
        self.parse_status = ParseResult.ERROR

    def read_lines(self) -> Optional[List[str]]:
        """Read the whole file, or return None with a warning if it does not exist"""
        if self.filepath is None or not self.filepath.is_file():
            if self.strict_mode:
                raise FileNotFoundError(f"File does not exist: {self.filepath}")
            self._add_warning(f"Unknown file or command {self.filepath}. Skipping.")
            return None
        return self.filepath.read_text(encoding='utf-8', errors='replace').splitlines()

    def parse_nodes(self, scanner: RecordScanner) -> List[Node]:
        """Parse the NBLOCK section, leaving the scanner past its terminator

        ET declarations met on the way are recorded for the element block.
        """
        scanner.advance_until(NODE_BLOCK_MARKER, on_line=self._declare_element_type)
        descriptor = FormatDescriptor.parse(scanner.next_line())
        if not descriptor.has_floats:
            raise MalformedInputError(f"Node block descriptor has no real fields (line {scanner.position})")

        logger.info("Reading nodes from file.")
        nodes = []
        line = scanner.next_line()
        while RecordScanner.first_token(line).upper() not in NODE_BLOCK_END:
            if not line.strip():
                line = scanner.next_line()
                continue
            try:
                x, y, z = decode_fixed_width(line, descriptor.int_block_width, descriptor.float_width, 3)
            except FieldFormatError as e:
                raise FieldFormatError(f"Line {scanner.position}: {e}") from None
            nodes.append(Node(len(nodes) + 1, x, y, z))
            line = scanner.next_line()

        logger.info("Read %d nodes from file.", len(nodes))
        return nodes

    def _declare_element_type(self, line: str, tokens: List[str]) -> None:
        if not tokens or tokens[0].strip().upper() != ELEMENT_TYPE_MARKER:
            return
        if len(tokens) < 3:
            raise MalformedInputError(f"Incomplete element type declaration: '{line.strip()}'")
        try:
            type_id = int(tokens[1])
        except ValueError:
            raise MalformedInputError(f"Invalid element type id in '{line.strip()}'") from None
        if type_id in self.element_types:
            return
        name = tokens[2].strip()
        self.element_types[type_id] = self.registry.kind_for_name(name)
        self.element_type_names[type_id] = name

    @staticmethod
    def _int_fields(line: str, line_num: int) -> List[int]:
        try:
            return [int(v) for v in RecordScanner.tokenize(line, ', \t')]
        except ValueError:
            raise MalformedInputError(f"Line {line_num}: non-integer field in element record") from None

    def parse_elements(self, scanner: RecordScanner) -> List[Element]:
        """Parse ET declarations and the EBLOCK section

        Returns:
            Elements of known kinds, in file order

        Raises:
            MalformedInputError: On an undeclared element type, a bad record
                or if the block is not terminated
        """
        logger.info("Reading elements from file.")
        scanner.advance_until(ELEMENT_BLOCK_MARKER, delimiters=', ', on_line=self._declare_element_type)
        logger.info("%d element types discovered in file.", len(self.element_types))

        descriptor = FormatDescriptor.parse(scanner.next_line())
        logger.debug("Element records use %d integer fields of width %d",
                     descriptor.int_count, descriptor.int_width)

        elements = []
        while True:
            line = scanner.next_line()
            line_num = scanner.position
            values = self._int_fields(line, line_num)
            if not values:
                continue
            if values[0] == int(ELEMENT_BLOCK_END):
                break
            if len(values) <= ELEMENT_ID_FIELD:
                raise MalformedInputError(f"Line {line_num}: element record has only {len(values)} fields")

            type_id = values[TYPE_FIELD]
            if type_id not in self.element_types:
                raise MalformedInputError(f"Line {line_num}: element type {type_id} was not declared")
            kind = self.element_types[type_id]
            num_nodes = values[NODE_COUNT_FIELD]
            element_id = values[ELEMENT_ID_FIELD]
            tag = values[TAG_FIELD]

            if len(values) < FIRST_NODE_FIELD + num_nodes:
                values.extend(self._int_fields(scanner.next_line(), scanner.position))
                if len(values) < FIRST_NODE_FIELD + num_nodes:
                    raise MalformedInputError(
                        f"Line {scanner.position}: element {element_id} lists fewer than {num_nodes} nodes")

            if kind is ElementKind.UNKNOWN:
                self.discarded_elements += 1
                self._add_warning(f"Element {element_id} has unsupported type "
                                  f"{self.element_type_names[type_id]}. Skipping.", line_num)
                continue
            if num_nodes != self.registry.node_count(kind):
                self.discarded_elements += 1
                self._add_warning(f"Element {element_id} has {num_nodes} nodes, {kind.name} expects "
                                  f"{self.registry.node_count(kind)}. Skipping.", line_num)
                continue

            node_ids = values[FIRST_NODE_FIELD:FIRST_NODE_FIELD + num_nodes]
            elements.append(Element(element_id, kind, tuple(node_ids), tag, tag))

        logger.info("Read %d elements from file.", len(elements))
        return elements

    def correct_merged(self, mesh: Mesh) -> int:
        """Run the merge correction on ``mesh``, recording skipped elements as warnings"""
        logger.info("Correcting merged elements...")
        report = correct_merged_elements(mesh.elements, self.registry)
        for element, found, expected in report.skipped:
            self._add_warning(f"Input element id {element.id} has {found} unique nodes, inconsistent "
                              f"with corrected element that expects {expected} unique nodes. Skipping.")
        mesh.elements = report.elements
        self.corrected_elements += report.corrected
        logger.info("Corrected %d elements.", report.corrected)
        return report.corrected

    def parse_lines(self, lines: Sequence[str], correct_merged: bool = False) -> Mesh:
        """Build a Mesh from the lines of an archive file"""
        self._reset()
        return self._build_mesh(lines, correct_merged)

    def _build_mesh(self, lines: Sequence[str], correct_merged: bool) -> Mesh:
        scanner = RecordScanner(lines)
        try:
            nodes = self.parse_nodes(scanner)
            elements = self.parse_elements(scanner)
        except (MalformedInputError, FieldFormatError) as e:
            self._add_error(str(e))
            raise

        mesh = Mesh(nodes, elements, registry=self.registry)
        if correct_merged:
            self.correct_merged(mesh)
        self.mesh = mesh
        return mesh

    def parse_all(self, correct_merged: bool = False) -> Mesh:
        """Read and parse the file; a missing file yields an empty Mesh"""
        self._reset()
        lines = self.read_lines()
        if lines is None:
            self.mesh = Mesh(registry=self.registry)
            return self.mesh

        logger.info("Parsing file %s...", self.filepath)
        mesh = self._build_mesh(lines, correct_merged)
        logger.info("Finished parsing file %s.", self.filepath)
        return mesh

    def get_parse_summary(self) -> Dict[str, Any]:
        """Get summary of parsing results"""
        return {
            'status': self.parse_status.value,
            'warnings_count': len(self.parse_warnings),
            'errors_count': len(self.parse_errors),
            'warnings': self.parse_warnings,
            'errors': self.parse_errors,
            'file_parsed': self.mesh is not None,
            'file_size_mb': self.filepath.stat().st_size / (1024**2)
            if self.filepath is not None and self.filepath.exists() else 0,
        }

    def get_statistics(self) -> Dict[str, Any]:
        if self.mesh is None:
            raise ValueError("No data parsed yet")
        return {
            'nodes': len(self.mesh.nodes),
            'elements': len(self.mesh.elements),
            'element_kinds': {kind.name: count for kind, count in self.mesh.element_kind_counts().items()},
            'element_types': {str(type_id): self.element_type_names[type_id] for type_id in self.element_types},
            'discarded_elements': self.discarded_elements,
            'corrected_elements': self.corrected_elements,
        }

    def print_concise_report(self) -> None:
        """Print a concise report of the parsed mesh"""
        stats = self.get_statistics()
        name = self.filepath.name if self.filepath is not None else "<memory>"

        print("\n" + "="*75)
        print("ANSYS MESH REPORT: " + name)
        print("="*75)

        print(f"\nMESH PROPERTIES:")
        print(f"  • Nodes:          {stats['nodes']:>12,}")
        print(f"  • Elements:       {stats['elements']:>12,}")
        print(f"  • Discarded:      {stats['discarded_elements']:>12,}")
        print(f"  • Corrected:      {stats['corrected_elements']:>12,}")

        print(f"\nELEMENT TYPES ({len(self.element_types)} declared):")
        for type_id in sorted(self.element_types):
            kind = self.element_types[type_id]
            print(f"  • ET {type_id:<4d} {self.element_type_names[type_id]:12s} -> {kind.name}")

        print(f"\nELEMENT KINDS:")
        total = stats['elements'] or 1
        for kind_name, count in sorted(stats['element_kinds'].items()):
            print(f"  • {kind_name:12s} {count:>10,} ({100 * count / total:5.1f}%)")

        print("\n" + "="*75 + "\n")

    def print_parse_issues(self) -> None:
        """Print parsing warnings and errors"""
        if not self.parse_warnings and not self.parse_errors:
            return

        print("\n" + "="*60)
        print("PARSING ISSUES")
        print("="*60)

        if self.parse_warnings:
            print(f"\nWARNINGS ({len(self.parse_warnings)}):")
            for i, warning in enumerate(self.parse_warnings, 1):
                print(f"  {i:2d}. {warning}")

        if self.parse_errors:
            print(f"\nERRORS ({len(self.parse_errors)}):")
            for i, error in enumerate(self.parse_errors, 1):
                print(f"  {i:2d}. {error}")

        print("\n" + "="*60 + "\n")

    def export_stats(self, filepath: Union[str, Path]) -> None:
        """Export statistics to JSON file"""
        export_data = {
            'file': str(self.filepath) if self.filepath is not None else None,
            'statistics': self.get_statistics(),
            'parse': self.get_parse_summary(),
        }

        with open(filepath, 'w') as f:
            json.dump(export_data, f, indent=2)

        logger.info("Statistics exported to %s", filepath)


def read_ansys_mesh(filepath: Union[str, Path], correct_merged: bool = False,
                    registry: ElementTypeRegistry = DEFAULT_REGISTRY) -> Mesh:
    """Parse an ANSYS archive into a Mesh"""
    return AnsysParser(filepath, registry=registry).parse_all(correct_merged=correct_merged)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point with robust error handling"""
    ap = argparse.ArgumentParser(description="Inspect the mesh of an ANSYS archive file")
    ap.add_argument("cdb_file", help="ANSYS archive (.cdb / .inp)")
    ap.add_argument("--correct-merged", action="store_true", help="Reclassify degenerate elements")
    ap.add_argument("--strict", action="store_true", help="Fail on any per-record anomaly")
    ap.add_argument("--show-issues", action="store_true", help="Display parsing warnings and errors")
    ap.add_argument("--export-stats", metavar="JSON", help="Export statistics to JSON file")
    args = ap.parse_args(argv)

    if not Path(args.cdb_file).is_file():
        print(f"❌ Error: File not found: {args.cdb_file}")
        return 1

    parser = AnsysParser(args.cdb_file, strict_mode=args.strict)

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ParseWarning)
            parser.parse_all(correct_merged=args.correct_merged)
    except (MalformedInputError, FieldFormatError, DataInconsistencyError) as e:
        print(f"\n❌ Invalid file format: {e}")
        if args.show_issues:
            parser.print_parse_issues()
        return 3

    if args.show_issues:
        parser.print_parse_issues()

    parser.print_concise_report()

    if args.export_stats:
        parser.export_stats(args.export_stats)

    if parser.parse_status == ParseResult.WARNING:
        print(f"\n⚠️  Parsing completed with {len(parser.parse_warnings)} warnings.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
