"""Product variation and price-variant matrix.

A ``VariationMatrix`` holds the variations of one product being edited
(e.g. "Warna" with options Hitam/Coklat, "Ukuran" with options A5/A4) and
derives one price variant per option combination. Prices, stock and SKUs
typed into the matrix survive structural edits: when the matrix is
regenerated, every combination whose key still exists keeps its values.

The matrix is plain in-memory state. Persistence, image hosting and
request handling live in the service layer.
"""
import itertools
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

MAX_VARIATIONS = 2
COMBINATION_SEPARATOR = "|"
DRAFT_PREFIX = "draft-"


@dataclass(frozen=True)
class PersistedOptionId:
    """Id of an option that already exists in the database."""

    value: int

    def __str__(self):
        return str(self.value)


@dataclass(frozen=True)
class DraftOptionId:
    """Id of an option created during this editing session."""

    token: str

    def __str__(self):
        return f"{DRAFT_PREFIX}{self.token}"

    @classmethod
    def new(cls):
        return cls(uuid.uuid4().hex[:12])


OptionId = Union[PersistedOptionId, DraftOptionId]


def parse_option_id(raw):
    """Turn a wire value into an option id.

    Integers and digit strings are persisted ids, anything else is a draft.
    Returns None for a missing id so the caller can mint a fresh draft.
    Raises ValueError for ids containing the combination separator.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, (PersistedOptionId, DraftOptionId)):
        return raw
    if isinstance(raw, bool):
        raise ValueError(f"Invalid option id: {raw!r}")
    if isinstance(raw, int):
        return PersistedOptionId(raw)
    raw = str(raw).strip()
    if COMBINATION_SEPARATOR in raw:
        raise ValueError(f"Option id must not contain {COMBINATION_SEPARATOR!r}: {raw!r}")
    if raw.isdigit():
        return PersistedOptionId(int(raw))
    if raw.startswith(DRAFT_PREFIX):
        raw = raw[len(DRAFT_PREFIX):]
    return DraftOptionId(raw)


def combination_key(option_ids):
    return COMBINATION_SEPARATOR.join(str(option_id) for option_id in option_ids)


def split_combination_key(key):
    """Inverse of combination_key()."""
    return tuple(parse_option_id(part) for part in key.split(COMBINATION_SEPARATOR))


@dataclass
class VariationOption:
    id: OptionId = field(default_factory=DraftOptionId.new)
    name: str = ""
    image_url: Optional[str] = None


@dataclass
class Variation:
    name: str = ""
    options: List[VariationOption] = field(default_factory=list)
    id: Optional[int] = None

    @classmethod
    def empty(cls):
        return cls(options=[VariationOption()])


@dataclass
class PriceVariantItem:
    option_combination: Tuple[OptionId, ...]
    option_labels: Tuple[str, ...] = ()
    price: Optional[float] = None
    stock: Optional[int] = None
    sku: Optional[str] = None
    id: Optional[int] = None

    @property
    def combination_key(self):
        return combination_key(self.option_combination)

    @property
    def label(self):
        return ", ".join(self.option_labels)


class VariationMatrix:
    """Editing state for the variations and price variants of one product."""

    VARIATION_FIELDS = {"name"}
    OPTION_FIELDS = {"name", "image_url"}
    PRICE_VARIANT_FIELDS = {"price", "stock", "sku"}

    def __init__(self, variations=None, price_variants=None, has_variations=None,
                 max_variations=MAX_VARIATIONS):
        self.max_variations = max_variations
        self.variations = list(variations or [])
        self.price_variants = list(price_variants or [])
        if has_variations is None:
            has_variations = bool(self.variations)
        self.has_variations = has_variations
        self.open_variation_forms = set()

    # -- variations ---------------------------------------------------------

    def set_has_variations(self, flag):
        if flag and not self.variations:
            # Give the editor something to type into.
            self.variations = [Variation.empty()]
        if not flag:
            self.price_variants = []
        self.has_variations = bool(flag)

    def add_variation(self):
        if len(self.variations) >= self.max_variations:
            return None
        variation = Variation.empty()
        self.variations.append(variation)
        return variation

    def update_variation(self, index, **fields):
        _check_fields(fields, self.VARIATION_FIELDS)
        variation = self.variation_at(index)
        if variation is None:
            return None
        for name, value in fields.items():
            setattr(variation, name, value)
        return variation

    def remove_variation(self, index):
        if self.variation_at(index) is None:
            return None
        removed = self.variations.pop(index)
        if not self.variations:
            self.has_variations = False
        return removed

    # -- options ------------------------------------------------------------

    def add_option(self, variation_index):
        variation = self.variation_at(variation_index)
        if variation is None:
            return None
        option = VariationOption()
        variation.options.append(option)
        return option

    def update_option(self, variation_index, option_index, **fields):
        _check_fields(fields, self.OPTION_FIELDS)
        option = self.option_at(variation_index, option_index)
        if option is None:
            return None
        if variation_index != 0:
            # Only the first variation carries option imagery.
            fields.pop("image_url", None)
        for name, value in fields.items():
            setattr(option, name, value)
        return option

    def remove_option(self, variation_index, option_index):
        """Remove an option, refusing to empty a variation.

        Returns the removed option, or None when nothing was removed.
        """
        if self.option_at(variation_index, option_index) is None:
            return None
        options = self.variations[variation_index].options
        if len(options) <= 1:
            return None
        return options.pop(option_index)

    def can_remove_option(self, variation_index):
        variation = self.variation_at(variation_index)
        return variation is not None and len(variation.options) > 1

    # -- editor forms -------------------------------------------------------

    def set_variation_form_open(self, index, is_open):
        if is_open:
            self.open_variation_forms.add(index)
        else:
            self.open_variation_forms.discard(index)

    @property
    def has_open_forms(self):
        return bool(self.open_variation_forms)

    # -- price variants -----------------------------------------------------

    def generate_price_variants(self):
        """Rebuild the matrix from the current options.

        Combinations are enumerated with the first variation as the outer
        loop. Values of combinations that already existed are carried over.
        """
        if not self.has_variations or not self.variations:
            self.price_variants = []
            return self.price_variants

        existing = {item.combination_key: item for item in self.price_variants}
        axes = [
            [(option.id, f"{variation.name}: {option.name}") for option in variation.options]
            for variation in self.variations
        ]

        generated = []
        for combo in itertools.product(*axes):
            option_ids = tuple(option_id for option_id, _ in combo)
            labels = tuple(label for _, label in combo)
            previous = existing.get(combination_key(option_ids))
            item = PriceVariantItem(option_combination=option_ids, option_labels=labels)
            if previous is not None:
                item.id = previous.id
                item.price = previous.price
                item.stock = previous.stock
                item.sku = previous.sku
            generated.append(item)

        self.price_variants = generated
        return generated

    def refresh(self):
        """Regenerate unless a variation is still being edited.

        Returns True when the matrix was regenerated.
        """
        if self.has_open_forms:
            return False
        if not any(variation.name for variation in self.variations):
            return False
        self.generate_price_variants()
        return True

    def update_price_variant(self, key, **fields):
        _check_fields(fields, self.PRICE_VARIANT_FIELDS)
        item = self.find_price_variant(key)
        if item is None:
            return None
        for name, value in fields.items():
            setattr(item, name, value)
        return item

    def find_price_variant(self, key):
        for item in self.price_variants:
            if item.combination_key == key:
                return item
        return None

    def apply_price_to_all(self, price):
        for key in self.combination_keys():
            self.update_price_variant(key, price=price)

    def apply_stock_to_all(self, stock):
        for key in self.combination_keys():
            self.update_price_variant(key, stock=stock)

    def combination_keys(self):
        return [item.combination_key for item in self.price_variants]

    # -- bulk state ---------------------------------------------------------

    def reset(self):
        self.has_variations = False
        self.variations = []
        self.open_variation_forms = set()
        self.price_variants = []

    def import_variations(self, variations):
        self.variations = list(variations)
        self.has_variations = bool(self.variations)

    def import_price_variants(self, price_variants):
        self.price_variants = list(price_variants)

    def image_urls(self):
        return [
            option.image_url
            for variation in self.variations
            for option in variation.options
            if option.image_url
        ]

    def to_payload(self):
        """Projection handed to the persistence layer on save."""
        return {
            "hasVariations": self.has_variations,
            "variations": [
                {
                    "name": variation.name,
                    "options": [
                        {"name": option.name, "imageUrl": option.image_url}
                        for option in variation.options
                    ],
                }
                for variation in self.variations
            ],
            "priceVariants": [
                {
                    "combinationKey": item.combination_key,
                    "price": item.price,
                    "stock": item.stock,
                    "sku": item.sku,
                }
                for item in self.price_variants
                if item.price is not None and item.stock is not None
            ],
        }

    # -- helpers ------------------------------------------------------------

    def variation_at(self, index):
        if 0 <= index < len(self.variations):
            return self.variations[index]
        return None

    def option_at(self, variation_index, option_index):
        variation = self.variation_at(variation_index)
        if variation is None or not 0 <= option_index < len(variation.options):
            return None
        return variation.options[option_index]

    def __repr__(self):
        return (
            f"<VariationMatrix variations={len(self.variations)} "
            f"price_variants={len(self.price_variants)}>"
        )


def _check_fields(fields, allowed):
    unknown = set(fields) - allowed
    if unknown:
        raise TypeError(f"Unknown field(s): {', '.join(sorted(unknown))}")
