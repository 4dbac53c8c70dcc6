"""Reader for the REACTIONS block of a Chemkin mechanism file.

Each reaction line ends with the three Arrhenius coefficients A (mol, cm^3, s),
b and E_a (cal/mol). The lines that follow a reaction can carry a ``LOW/``
low-pressure limit, ``TROE/`` broadening parameters, a ``DUPLICATE`` flag or
third-body enhancement factors ``SPECIES/ weight /``.

Module Summary:
- Classes:
    - ``ReactionEntry``: One parsed reaction with its auxiliary lines.
    - ``ChemkinFile``: All entries of a file, duplicates merged.
- Functions:
    - ``canonical_label(label)``: Upper-case species label.
    - ``parse_stoichiometry(reaction)``: Educts, products and third-body flag.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import ParseError

logger = logging.getLogger(__name__)

# (+M), (+AR), ... of a falloff reaction
_FALLOFF = re.compile(r"\(\+([^()]+)\)")
_KEYWORDS = ("LOW", "TROE", "DUPLICATE", "DUP", "REV", "SRI", "PLOG", "FORD", "HIGH")


def canonical_label(label: str) -> str:
    return label.strip().upper()


def _split_coefficient(token: str) -> Tuple[float, str]:
    """Split '2H2O' into (2.0, 'H2O')."""
    match = re.match(r"^(\d+\.?\d*|\.\d+)?(.+)$", token)
    number, label = match.groups()
    return (float(number) if number else 1.0), canonical_label(label)


def _side(text: str) -> Tuple[Dict[str, float], bool]:
    species: Dict[str, float] = {}
    third_body = False
    for token in (t for t in text.split("+") if t):
        nu, label = _split_coefficient(token)
        if label == "M":
            third_body = True
            continue
        species[label] = species.get(label, 0.0) + nu
    return species, third_body


def parse_stoichiometry(reaction: str) -> Tuple[Dict[str, float], Dict[str, float], bool]:
    """Educts and products of a canonical reaction string such as 'H+O2+M=HO2+M'.

    Returns:
        Tuple of (educts, products, has_third_body); the stoichiometric
        coefficients of repeated species are summed
    """
    text = reaction.replace("<", "").replace(">", "").replace(" ", "")
    if text.count("=") != 1:
        raise ValueError(f"reaction '{reaction}' needs exactly one '='")
    left, right = text.split("=")
    educts, tb_left = _side(left)
    products, tb_right = _side(right)
    if not educts or not products:
        raise ValueError(f"reaction '{reaction}' has an empty side")
    return educts, products, tb_left or tb_right


@dataclass
class ReactionEntry:
    """One reaction of the mechanism.

    Attributes:
        reaction: Canonical reaction string, falloff partners written as '+M'
        coefficients: Arrhenius (A, b, E_a)
        line_number: 1-based line of the reaction in the file
        low: Low-pressure Arrhenius coefficients of a falloff reaction
        troe: Troe parameters (a, T***, T*, T**); T** is None if omitted
        duplicate_flag: The entry carries a DUPLICATE line
        duplicate: Arrhenius coefficients of the merged duplicate
        third_body: Enhancement factors by species label
        falloff_partner: Species X of a '(+X)' falloff with X other than M
        active: False for a duplicate that was merged into its partner
    """

    reaction: str
    coefficients: Tuple[float, float, float]
    line_number: int
    low: Optional[Tuple[float, float, float]] = None
    troe: Optional[Tuple[float, float, float, Optional[float]]] = None
    duplicate_flag: bool = False
    duplicate: Optional[Tuple[float, float, float]] = None
    third_body: Dict[str, float] = field(default_factory=dict)
    falloff_partner: Optional[str] = None
    active: bool = True

    @property
    def has_third_body(self) -> bool:
        return parse_stoichiometry(self.reaction)[2]


class ChemkinFile:
    """Parsed REACTIONS block.

    Args:
        path: Mechanism file

    Raises:
        ParseError: For malformed numbers, keyword lines or unsupported duplicates
    """

    def __init__(self, path: str):
        self.path = path
        with open(path, "r") as f:
            self.lines = f.read().splitlines()
        self.entries: List[ReactionEntry] = []
        start, end = self._find_tags()
        self._read_entries(start, end)
        self._merge_duplicates()
        logger.info("%s: %d reactions (%d entries)", path, self.number_of_reactions,
                    len(self.entries))

    @property
    def number_of_reactions(self) -> int:
        return sum(1 for e in self.entries if e.active)

    @property
    def reactions(self) -> List[ReactionEntry]:
        return [e for e in self.entries if e.active]

    def species(self) -> List[str]:
        """Species labels in order of first appearance."""
        labels: List[str] = []
        for entry in self.entries:
            educts, products, _ = parse_stoichiometry(entry.reaction)
            for label in list(educts) + list(products):
                if label not in labels:
                    labels.append(label)
        return labels

    # ==================== Parsing ====================

    def _find_tags(self) -> Tuple[int, int]:
        start, end = None, len(self.lines)
        for k, line in enumerate(self.lines):
            words = line.split("!")[0].split()
            if not words:
                continue
            word = words[0].upper()
            if start is None and word.startswith("REAC"):
                start = k + 1
            elif start is not None and word == "END":
                end = k
                break
        if start is None:
            raise ParseError("no REACTIONS block", len(self.lines))
        return start, end

    def _read_entries(self, start: int, end: int) -> None:
        entry: Optional[ReactionEntry] = None
        for k in range(start, end):
            line_number = k + 1
            line = self.lines[k].split("!")[0].strip().upper()
            if not line:
                continue
            words = line.split()
            if len(words) > 3 and "=" in "".join(words[:-3]):
                entry = self._read_reaction(words, line_number)
                self.entries.append(entry)
            elif entry is None:
                raise ParseError(f"auxiliary line before the first reaction: '{line}'", line_number)
            else:
                self._read_auxiliary(entry, line, line_number)

    @staticmethod
    def _numbers(text: str, line_number: int) -> List[float]:
        try:
            return [float(w) for w in text.replace("/", " ").split()]
        except ValueError as e:
            raise ParseError(f"cannot read numbers from '{text}'", line_number) from e

    def _read_reaction(self, words: List[str], line_number: int) -> ReactionEntry:
        A, b, Ea = self._numbers(" ".join(words[-3:]), line_number)
        reaction = "".join(words[:-3]).replace("<", "").replace(">", "")

        partner = None
        for match in _FALLOFF.finditer(reaction):
            if match.group(1) != "M":
                partner = canonical_label(match.group(1))
        reaction = _FALLOFF.sub("+M", reaction)
        try:
            parse_stoichiometry(reaction)
        except ValueError as e:
            raise ParseError(str(e), line_number) from e
        return ReactionEntry(reaction, (A, b, Ea), line_number, falloff_partner=partner)

    def _read_auxiliary(self, entry: ReactionEntry, line: str, line_number: int) -> None:
        keyword = re.split(r"[\s/]", line, maxsplit=1)[0]
        if keyword == "LOW":
            values = self._numbers(line[3:], line_number)
            if len(values) != 3:
                raise ParseError("LOW needs three coefficients", line_number)
            entry.low = tuple(values)
        elif keyword == "TROE":
            values = self._numbers(line[4:], line_number)
            if len(values) not in (3, 4):
                raise ParseError("TROE needs three or four parameters", line_number)
            entry.troe = tuple(values) if len(values) == 4 else (*values, None)
        elif keyword in ("DUPLICATE", "DUP"):
            entry.duplicate_flag = True
        elif keyword in _KEYWORDS:
            raise ParseError(f"unsupported keyword {keyword}", line_number)
        elif "/" in line:
            words = line.replace("/", " ").split()
            if len(words) % 2:
                raise ParseError(f"unbalanced third-body line '{line}'", line_number)
            for label, weight in zip(words[0::2], words[1::2]):
                try:
                    entry.third_body[canonical_label(label)] = float(weight)
                except ValueError as e:
                    raise ParseError(f"bad third-body weight '{weight}'", line_number) from e
        else:
            raise ParseError(f"cannot interpret '{line}'", line_number)

    def _merge_duplicates(self) -> None:
        first: Dict[str, ReactionEntry] = {}
        for entry in self.entries:
            if not entry.duplicate_flag:
                continue
            original = first.get(entry.reaction)
            if original is None:
                first[entry.reaction] = entry
                continue
            for e in (original, entry):
                if e.low is not None or e.troe is not None or e.third_body or e.has_third_body:
                    raise ParseError(f"unsupported type of duplicate entry {e.reaction}",
                                     e.line_number)
            original.duplicate = entry.coefficients
            entry.active = False
            # a third copy pairs up with a new original
            del first[entry.reaction]
