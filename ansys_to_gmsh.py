#!/usr/bin/env python3
"""
ANSYS to GMSH Export Utility

Converts the mesh of an ANSYS archive file (.cdb / .inp) to a GMSH mesh file.

Usage:
    python3 ansys_to_gmsh.py input.cdb output.msh
    python3 ansys_to_gmsh.py input.cdb output.msh --format 2.2 --correct-merged

Options:
    --format            GMSH file version, 1 (default) or 2.2
    --correct-merged    Reclassify elements degenerated by node merging
    --input-unit        Length unit of the ANSYS model (default: m)
    --output-unit       Length unit of the GMSH file (default: same as input)
    --show-issues       Print parsing warnings
    --verbose           Log progress
    --log-file          Also write the log to this file

Examples:
    # Legacy MSH 1 output
    python3 ansys_to_gmsh.py bracket.cdb bracket.msh

    # MSH 2.2 output in metres from a model built in millimetres
    python3 ansys_to_gmsh.py bracket.cdb bracket.msh --format 2.2 --input-unit mm --output-unit m
"""

import argparse
import logging
import sys
import warnings
from pathlib import Path
from typing import Optional, Sequence

from ansys_parser import AnsysParser, FieldFormatError, MalformedInputError, ParseWarning
from gmsh_mesh import MeshFormat, UnsupportedFormatError
from length_units import ConvertLengths
from logging_config import setup_logging


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Convert an ANSYS archive mesh to GMSH format")
    ap.add_argument("input_file", help="ANSYS archive (.cdb / .inp)")
    ap.add_argument("output_file", help="GMSH mesh file to write")
    ap.add_argument("--format", default=MeshFormat.MSH_1.value, help="GMSH file version: 1 or 2.2")
    ap.add_argument("--correct-merged", action="store_true",
                    help="Reclassify degenerate elements (e.g. collapsed hexahedra as tetrahedra)")
    ap.add_argument("--input-unit", default=None, help="Length unit of the input model")
    ap.add_argument("--output-unit", default=None, help="Length unit of the output mesh")
    ap.add_argument("--show-issues", action="store_true", help="Print parsing warnings")
    ap.add_argument("--verbose", action="store_true", help="Log progress")
    ap.add_argument("--log-file", default=None, help="Also write the log to this file")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(logging.INFO if args.verbose else logging.WARNING, args.log_file)

    input_file = Path(args.input_file)
    if not input_file.exists():
        print(f"Error: Input file not found: {input_file}")
        return 1

    try:
        version = MeshFormat.resolve(args.format)
    except UnsupportedFormatError as e:
        print(f"Error: {e}")
        return 4

    print(f"ANSYS to GMSH Export")
    print(f"="*70)
    print(f"Input:  {input_file}")
    print(f"Output: {args.output_file}")
    print(f"Format: MSH {version.value}{' (merged elements corrected)' if args.correct_merged else ''}")
    print()

    parser = AnsysParser(input_file)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ParseWarning)
            mesh = parser.parse_all(correct_merged=args.correct_merged)

        if args.input_unit or args.output_unit:
            input_unit = args.input_unit or "m"
            converter = ConvertLengths(input_unit, args.output_unit or input_unit)
            mesh.convert_units(converter)
            print(f"Scaled coordinates by {converter.factor:g}")

        mesh.write(args.output_file, version)

    except (MalformedInputError, FieldFormatError) as e:
        print(f"\nInvalid ANSYS file: {e}")
        return 3

    except Exception as e:
        print(f"\nError during export: {e}")
        logging.getLogger(__name__).debug("Export failed", exc_info=True)
        return 5

    if args.show_issues:
        parser.print_parse_issues()

    print(f"  Nodes:     {len(mesh.nodes):>10,}")
    print(f"  Elements:  {len(mesh.elements):>10,}")
    if args.correct_merged:
        print(f"  Corrected: {parser.corrected_elements:>10,}")
    print("Export complete!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
