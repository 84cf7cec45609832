"""Static digit and panna reference sets used to classify and validate bid values."""

from __future__ import annotations

from dataclasses import dataclass

from app.errors import InvalidValue

from .models import BidKind

SINGLE_DIGITS: tuple[str, ...] = tuple(str(digit) for digit in range(10))

JODI_DIGITS: tuple[str, ...] = tuple(f"{number:02d}" for number in range(100))

# Rows are grouped by the last digit of the digit sum, 0 through 9.
SINGLE_PANNA: tuple[str, ...] = (
    "127", "136", "145", "190", "235", "280", "370", "389", "460", "479", "569", "578",
    "128", "137", "146", "236", "245", "290", "380", "470", "489", "560", "579", "678",
    "129", "138", "147", "156", "237", "246", "345", "390", "480", "570", "589", "679",
    "120", "139", "148", "157", "238", "247", "256", "346", "490", "580", "670", "689",
    "130", "149", "158", "167", "239", "248", "257", "347", "356", "590", "680", "789",
    "140", "159", "168", "230", "249", "258", "267", "348", "357", "456", "690", "780",
    "123", "150", "169", "178", "240", "259", "268", "349", "358", "367", "457", "790",
    "124", "160", "278", "179", "250", "269", "340", "359", "368", "458", "467", "890",
    "125", "134", "170", "189", "260", "279", "350", "369", "468", "378", "459", "567",
    "126", "135", "180", "234", "270", "289", "360", "379", "450", "469", "478", "568",
)

DOUBLE_PANNA: tuple[str, ...] = (
    "118", "226", "244", "299", "334", "488", "550", "668", "677",
    "100", "119", "155", "227", "335", "344", "399", "588", "669",
    "110", "200", "228", "255", "336", "499", "660", "688", "778",
    "166", "229", "300", "337", "355", "445", "599", "779", "788",
    "112", "220", "266", "338", "400", "446", "455", "699", "770",
    "113", "122", "177", "339", "366", "447", "500", "799", "889",
    "600", "114", "277", "330", "448", "466", "556", "880", "899",
    "115", "133", "188", "223", "377", "449", "557", "566", "700",
    "116", "224", "233", "288", "440", "477", "558", "800", "990",
    "117", "144", "199", "225", "388", "559", "577", "667", "900",
)

TRIPLE_PANNA: tuple[str, ...] = tuple(str(digit) * 3 for digit in range(10))

_CLASSIFY_ORDER = (
    BidKind.SINGLE_DIGIT,
    BidKind.JODI,
    BidKind.SINGLE_PANNA,
    BidKind.DOUBLE_PANNA,
    BidKind.TRIPLE_PANNA,
)


def panna_digit(panna: str) -> str:
    """Last digit of the panna's digit sum, i.e. the digit it declares."""

    if len(panna) != 3 or not panna.isdigit():
        raise InvalidValue(f"Panna must be a 3-digit number, got {panna!r}")
    return str(sum(int(char) for char in panna) % 10)


@dataclass(slots=True, frozen=True)
class Catalog:
    single_digit: frozenset[str]
    jodi: frozenset[str]
    single_panna: frozenset[str]
    double_panna: frozenset[str]
    triple_panna: frozenset[str]

    @classmethod
    def build(cls) -> "Catalog":
        return cls(
            single_digit=frozenset(SINGLE_DIGITS),
            jodi=frozenset(JODI_DIGITS),
            single_panna=frozenset(SINGLE_PANNA),
            double_panna=frozenset(DOUBLE_PANNA),
            triple_panna=frozenset(TRIPLE_PANNA),
        )

    def members(self, kind: BidKind) -> frozenset[str]:
        if kind in (BidKind.SINGLE_DIGIT, BidKind.LEFT_DIGIT, BidKind.RIGHT_DIGIT):
            return self.single_digit
        if kind is BidKind.JODI:
            return self.jodi
        if kind.is_sangam:
            return self.single_panna | self.double_panna | self.triple_panna
        if kind is BidKind.SINGLE_PANNA:
            return self.single_panna
        if kind is BidKind.DOUBLE_PANNA:
            return self.double_panna
        return self.triple_panna

    def values(self, kind: BidKind) -> list[str]:
        return sorted(self.members(kind))

    def panna_values(self) -> dict[BidKind, list[str]]:
        return {
            kind: self.values(kind)
            for kind in (BidKind.SINGLE_PANNA, BidKind.DOUBLE_PANNA, BidKind.TRIPLE_PANNA)
        }

    def classify(self, value: str) -> BidKind:
        if isinstance(value, str):
            for kind in _CLASSIFY_ORDER:
                if value in self.members(kind):
                    return kind
        raise InvalidValue(f"{value!r} is not a digit, jodi or panna")

    def validate(self, kind: BidKind, value: str | None) -> str:
        """Return ``value`` when it belongs to the catalog for ``kind``."""

        if not isinstance(value, str) or value not in self.members(kind):
            raise InvalidValue(f"{value!r} is not a valid {kind.value.replace('_', ' ')} value")
        return value


DEFAULT_CATALOG = Catalog.build()


def classify(value: str, catalog: Catalog = DEFAULT_CATALOG) -> BidKind:
    return catalog.classify(value)


__all__ = [
    "Catalog",
    "DEFAULT_CATALOG",
    "DOUBLE_PANNA",
    "JODI_DIGITS",
    "SINGLE_DIGITS",
    "SINGLE_PANNA",
    "TRIPLE_PANNA",
    "classify",
    "panna_digit",
]
