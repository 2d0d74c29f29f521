"""
Predefined retro palettes and hex palette parsing.

A palette can be given by name (case-insensitive, e.g. "pico-8") or as a list
of '#rrggbb' strings; both resolve to a tuple of hex strings.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import ConfigurationError

RGB = Tuple[int, int, int]


def rgb_to_hex(color: Sequence[int]) -> str:
    r, g, b = (int(round(float(c))) for c in color[:3])
    return f"#{r:02x}{g:02x}{b:02x}"


@dataclass(frozen=True)
class ColorPalette:
    name: str
    description: str
    colors: Tuple[RGB, ...]

    def to_hex(self) -> Tuple[str, ...]:
        """Distinct colours as hex strings, in table order"""
        seen = []
        for color in self.colors:
            hex_color = rgb_to_hex(color)
            # NES repeats black several times
            if hex_color not in seen:
                seen.append(hex_color)
        return tuple(seen)


PREDEFINED_PALETTES: Tuple[ColorPalette, ...] = (
    ColorPalette(
        "NES",
        "Classic 8-bit NES color palette",
        (
            (84, 84, 84), (0, 30, 116), (8, 16, 144), (48, 0, 136),
            (68, 0, 100), (92, 0, 48), (84, 4, 0), (60, 24, 0),
            (32, 42, 0), (8, 58, 0), (0, 64, 0), (0, 60, 48),
            (0, 50, 92), (0, 0, 0), (0, 0, 0), (0, 0, 0),
            (152, 150, 152), (8, 76, 196), (48, 50, 236), (92, 30, 228),
            (136, 20, 176), (160, 20, 100), (152, 34, 32), (120, 60, 0),
            (84, 90, 0), (40, 114, 0), (8, 124, 0), (0, 118, 40),
            (0, 102, 120), (0, 0, 0), (0, 0, 0), (0, 0, 0),
            (236, 238, 236), (76, 154, 236), (120, 124, 236), (176, 98, 236),
            (228, 84, 236), (236, 88, 180), (236, 106, 100), (212, 136, 32),
            (160, 170, 0), (116, 196, 0), (76, 208, 32), (56, 204, 108),
            (56, 180, 204), (60, 60, 60), (0, 0, 0), (0, 0, 0),
            (236, 238, 236), (168, 204, 236), (188, 188, 236), (212, 178, 236),
            (236, 174, 236), (236, 174, 212), (236, 180, 176), (228, 196, 144),
            (204, 210, 120), (180, 222, 120), (168, 226, 144), (152, 226, 180),
            (160, 214, 228), (160, 162, 160), (0, 0, 0), (0, 0, 0),
        ),
    ),
    ColorPalette(
        "Gameboy",
        "Classic Game Boy monochrome palette",
        ((15, 56, 15), (48, 98, 48), (139, 172, 15), (155, 188, 15)),
    ),
    ColorPalette(
        "Pico-8",
        "Pico-8 fantasy console 16-color palette",
        (
            (0, 0, 0), (29, 43, 83), (126, 37, 83), (0, 135, 81),
            (171, 82, 54), (95, 87, 79), (194, 195, 199), (255, 241, 232),
            (255, 0, 77), (255, 163, 0), (255, 236, 39), (0, 228, 54),
            (41, 173, 255), (131, 118, 156), (255, 119, 168), (255, 204, 170),
        ),
    ),
    ColorPalette(
        "Commodore 64",
        "Commodore 64 computer palette",
        (
            (0, 0, 0), (255, 255, 255), (136, 57, 50), (103, 182, 189),
            (139, 63, 150), (85, 160, 73), (64, 49, 141), (191, 206, 114),
            (139, 84, 41), (87, 66, 0), (184, 105, 98), (80, 80, 80),
            (120, 120, 120), (148, 224, 137), (120, 105, 196), (159, 159, 159),
        ),
    ),
    ColorPalette(
        "CGA",
        "IBM CGA 16-color palette",
        (
            (0, 0, 0), (0, 0, 170), (0, 170, 0), (0, 170, 170),
            (170, 0, 0), (170, 0, 170), (170, 85, 0), (170, 170, 170),
            (85, 85, 85), (85, 85, 255), (85, 255, 85), (85, 255, 255),
            (255, 85, 85), (255, 85, 255), (255, 255, 85), (255, 255, 255),
        ),
    ),
    ColorPalette(
        "Endesga 32",
        "32-color pixel art palette by Endesga",
        (
            (190, 74, 47), (215, 118, 67), (234, 212, 170), (228, 166, 114),
            (184, 111, 80), (116, 63, 57), (63, 39, 49), (84, 78, 104),
            (140, 143, 174), (208, 207, 221), (255, 255, 255), (52, 101, 36),
            (91, 143, 85), (135, 192, 124), (171, 236, 149), (234, 255, 137),
            (249, 241, 165), (255, 255, 119), (255, 204, 102), (255, 102, 99),
            (238, 52, 78), (204, 0, 123), (111, 30, 81), (75, 105, 47),
            (82, 75, 36), (50, 60, 57), (63, 63, 116), (48, 96, 130),
            (91, 110, 225), (99, 155, 255), (95, 205, 228), (203, 219, 252),
        ),
    ),
    ColorPalette(
        "CHOCOMILK-8",
        "Warm 8-color palette with chocolate and milk tones by Blylzz",
        (
            (214, 245, 228), (247, 255, 197), (180, 199, 136), (138, 137, 105),
            (139, 106, 68), (98, 85, 76), (70, 60, 60), (49, 38, 41),
        ),
    ),
    ColorPalette(
        "SLSO8",
        "8-color palette with deep blues to warm oranges",
        (
            (13, 43, 69), (32, 60, 86), (84, 78, 104), (141, 105, 122),
            (208, 129, 89), (255, 170, 94), (255, 212, 163), (255, 236, 214),
        ),
    ),
    ColorPalette(
        "CC-29",
        "29-color palette with muted tones and pastels",
        (
            (242, 240, 229), (184, 181, 185), (134, 129, 136), (100, 99, 101),
            (69, 68, 79), (58, 56, 88), (33, 33, 35), (53, 43, 66),
            (67, 67, 106), (75, 128, 202), (104, 194, 211), (162, 220, 199),
            (237, 225, 158), (211, 160, 104), (180, 82, 82), (106, 83, 110),
            (75, 65, 88), (128, 73, 58), (167, 123, 91), (229, 206, 180),
            (194, 211, 104), (138, 176, 96), (86, 123, 121), (78, 88, 74),
            (123, 114, 67), (178, 180, 126), (237, 200, 196), (207, 138, 203),
            (95, 85, 106),
        ),
    ),
    ColorPalette(
        "Vinik24",
        "Soft pastel take on the Super Game Boy palette by Vinik",
        (
            (0, 0, 0), (111, 103, 118), (154, 154, 151), (197, 204, 184),
            (139, 85, 128), (195, 136, 144), (165, 147, 165), (102, 96, 146),
            (154, 79, 80), (194, 141, 117), (124, 161, 192), (65, 106, 163),
            (141, 98, 104), (190, 149, 92), (104, 172, 169), (56, 112, 128),
            (110, 105, 98), (147, 161, 103), (110, 170, 120), (85, 112, 100),
            (157, 159, 127), (126, 158, 153), (93, 104, 114), (67, 52, 85),
        ),
    ),
    ColorPalette(
        "Resurrect 64",
        "Comprehensive 64-color palette for detailed pixel art",
        (
            (46, 34, 47), (62, 53, 70), (98, 85, 101), (150, 108, 108),
            (171, 148, 122), (105, 79, 98), (127, 112, 138), (155, 171, 178),
            (199, 220, 208), (255, 255, 255), (110, 39, 39), (179, 56, 49),
            (234, 79, 54), (245, 125, 74), (174, 35, 52), (232, 59, 59),
            (251, 107, 29), (247, 150, 23), (249, 194, 43), (122, 48, 69),
            (158, 69, 57), (205, 104, 61), (230, 144, 78), (251, 185, 84),
            (76, 62, 36), (103, 102, 51), (162, 169, 71), (213, 224, 75),
            (251, 255, 134), (22, 90, 76), (35, 144, 99), (30, 188, 115),
            (145, 219, 105), (205, 223, 108), (49, 54, 56), (55, 78, 74),
            (84, 126, 100), (146, 169, 132), (178, 186, 144), (11, 94, 101),
            (11, 138, 143), (14, 175, 155), (48, 225, 185), (143, 248, 226),
            (50, 41, 83), (72, 74, 119), (77, 101, 180), (77, 155, 230),
            (143, 211, 255), (69, 41, 63), (107, 62, 117), (144, 94, 169),
            (168, 132, 243), (234, 173, 237), (117, 60, 84), (162, 75, 111),
            (207, 101, 127), (237, 128, 153), (131, 28, 93), (195, 36, 84),
            (240, 79, 120), (246, 129, 129), (252, 167, 144),
        ),
    ),
)


def palette_names() -> List[str]:
    return [p.name for p in PREDEFINED_PALETTES]


def get_palette_by_name(name: str) -> Optional[ColorPalette]:
    """Look up a predefined palette, ignoring case and surrounding spaces"""
    key = name.strip().lower()
    for palette in PREDEFINED_PALETTES:
        if palette.name.lower() == key:
            return palette
    return None


def resolve_palette(value: Union[str, Sequence[str]]) -> Tuple[str, ...]:
    """
    Turn a palette name, a single hex colour or a list of hex colours into a
    tuple of hex strings.

    Raises:
        ConfigurationError: Unknown palette name
    """
    if isinstance(value, str):
        if value.strip().startswith("#"):
            return (value.strip(),)
        palette = get_palette_by_name(value)
        if palette is None:
            raise ConfigurationError(f"Unknown palette '{value}' (known: {', '.join(palette_names())})")
        return palette.to_hex()
    return tuple(value)


def parse_hex_palette(colors: Sequence[str]) -> np.ndarray:
    """'#rrggbb' strings to a uint8 (n, 3) palette"""
    palette = []
    for color in colors:
        if not isinstance(color, str):
            raise ConfigurationError(f"Invalid hex colour: {color!r}")
        hex_color = color.strip().lstrip("#")
        if len(hex_color) != 6:
            raise ConfigurationError(f"Invalid hex colour: '{color}'")
        try:
            palette.append((int(hex_color[0:2], 16), int(hex_color[2:4], 16), int(hex_color[4:6], 16)))
        except ValueError as e:
            raise ConfigurationError(f"Invalid hex colour: '{color}'") from e
    if not palette:
        raise ConfigurationError("Palette is empty")
    return np.array(palette, dtype=np.uint8)
