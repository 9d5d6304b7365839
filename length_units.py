"""
Length Unit Conversion
======================

Scalar conversion factors between common length units, used to rescale mesh
coordinates after import.

Usage:
    >>> ConvertLengths('km', 'm').factor
    1000.0
    >>> mesh.convert_units(ConvertLengths('mm', 'mil'))
"""

import logging
from enum import Enum
from typing import Dict, Tuple, Union

logger = logging.getLogger(__name__)


class LengthUnit(Enum):
    """Supported length units, valued by their size in metres"""
    KILOMETER = 1000.0
    METER = 1.0
    CENTIMETER = 0.01
    MILLIMETER = 0.001
    MILE = 1600.0
    FOOT = 0.3048
    INCH = 0.0254
    MIL = 0.0000254


UNIT_NAMES: Dict[LengthUnit, Tuple[str, ...]] = {
    LengthUnit.KILOMETER: ("km", "KM", "Km", "kilometer", "Kilometer", "kilometre", "Kilometre"),
    LengthUnit.METER: ("m", "M", "meter", "Meter", "metre", "Metre"),
    LengthUnit.CENTIMETER: ("cm", "CM", "Cm", "centimeter", "Centimeter", "centimetre", "Centimetre"),
    LengthUnit.MILLIMETER: ("mm", "MM", "Mm", "millimeter", "Millimeter", "millimetre", "Millimetre"),
    LengthUnit.MILE: ("mile", "Mile"),
    LengthUnit.FOOT: ("foot", "Foot", "feet", "Feet"),
    LengthUnit.INCH: ("inch", "Inch", "inches", "Inches"),
    LengthUnit.MIL: ("mil", "Mil"),
}

CANDIDATE_UNITS = "km, m, cm, mm, mile, foot, inch, mil"
DEFAULT_UNIT = LengthUnit.METER


def parse_length_unit(name: str) -> LengthUnit:
    """Look up a unit by one of its names, falling back to metres"""
    for unit, names in UNIT_NAMES.items():
        if name in names:
            return unit
    logger.warning("Unknown unit %s. Candidates are %s. Using default unit m.",
                   name, CANDIDATE_UNITS)
    return DEFAULT_UNIT


class ConvertLengths:
    """Converts lengths from an input unit to an output unit"""

    def __init__(self, input_unit: Union[LengthUnit, str], output_unit: Union[LengthUnit, str]):
        self._input_unit = self._as_unit(input_unit)
        self._output_unit = self._as_unit(output_unit)
        self._factor = 1.0
        self._update_factor()

    @staticmethod
    def _as_unit(unit: Union[LengthUnit, str]) -> LengthUnit:
        if isinstance(unit, LengthUnit):
            return unit
        return parse_length_unit(unit)

    def _update_factor(self) -> None:
        self._factor = self._input_unit.value / self._output_unit.value

    @property
    def input_unit(self) -> LengthUnit:
        return self._input_unit

    @input_unit.setter
    def input_unit(self, unit: Union[LengthUnit, str]) -> None:
        self._input_unit = self._as_unit(unit)
        self._update_factor()

    @property
    def output_unit(self) -> LengthUnit:
        return self._output_unit

    @output_unit.setter
    def output_unit(self, unit: Union[LengthUnit, str]) -> None:
        self._output_unit = self._as_unit(unit)
        self._update_factor()

    @property
    def factor(self) -> float:
        return self._factor

    def convert(self, value: float) -> float:
        return value * self._factor
