"""Map suggested category labels onto a column's select-item vocabulary."""

import random
from typing import Callable, Iterable, List, Optional, Sequence, Set, Union
from uuid import uuid4

from tablefill.core.exceptions import ValidationError
from tablefill.schemas.enrichment import (
    MULTI_VALUE_SEPARATOR,
    MultiValue,
    ReconciliationResult,
    SingleValue,
)
from tablefill.schemas.table import ColumnType, SelectItem
from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)

SELECT_COLORS = (
    "#FF8F37",  # Orange
    "#FFB347",  # Yellow
    "#4CAF50",  # Green
    "#2196F3",  # Blue
    "#9C27B0",  # Purple
    "#E91E63",  # Pink
    "#F44336",  # Red
)


def get_unused_color(
    used_colors: Optional[Set[str]] = None,
    palette: Sequence[str] = SELECT_COLORS,
    rng: Optional[random.Random] = None,
) -> str:
    """First palette color not in use, or a random one once all are taken."""
    used = used_colors or set()
    for color in palette:
        if color not in used:
            return color
    return (rng or random).choice(list(palette))


def create_select_item(
    name: str,
    existing_items: Iterable[SelectItem] = (),
    palette: Sequence[str] = SELECT_COLORS,
    rng: Optional[random.Random] = None,
    id_factory: Callable[[], str] = lambda: str(uuid4()),
) -> SelectItem:
    """New item named as given (trimmed), colored to avoid the existing items."""
    used_colors = {item.color for item in existing_items}
    return SelectItem(
        id=id_factory(),
        name=name.strip(),
        color=get_unused_color(used_colors, palette, rng),
    )


def parse_selected_values(value: Optional[str], is_multi_select: bool) -> List[str]:
    """Split a stored cell value into its labels."""
    if not value:
        return []
    if not is_multi_select:
        return [value]
    return [part.strip() for part in value.split(",") if part.strip()]


def join_selected_values(values: Iterable[str]) -> str:
    return MULTI_VALUE_SEPARATOR.join(values)


def _normalize_suggestions(result: Union[str, Sequence[str], None], is_multi_select: bool) -> List[str]:
    if result is None:
        return []
    if isinstance(result, str):
        labels = parse_selected_values(result, is_multi_select)
    elif is_multi_select:
        # Stored multiSelect values are comma-joined, so a label cannot hold a comma
        labels = [part for label in result for part in parse_selected_values(str(label), True)]
    else:
        labels = [str(label) for label in result]
    return [label.strip() for label in labels if label and label.strip()]


class CategoricalReconciler:
    """Canonicalizes labels against existing items and creates missing ones.

    Matching is case-insensitive; matched labels take the stored casing.
    Existing items are never modified or removed.
    """

    def __init__(
        self,
        palette: Sequence[str] = SELECT_COLORS,
        rng: Optional[random.Random] = None,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        if not palette:
            raise ValueError("palette must not be empty")
        self.palette = tuple(palette)
        self.rng = rng
        self.id_factory = id_factory

    def reconcile(
        self,
        column_type: Union[ColumnType, str],
        result: Union[str, Sequence[str], None],
        select_items: Sequence[SelectItem],
    ) -> ReconciliationResult:
        """Reconcile synthesizer output for a select or multiSelect column.

        Args:
            column_type: Must be select or multiSelect
            result: Suggested label (select) or labels (multiSelect)
            select_items: Current vocabulary of the column

        Returns:
            ReconciliationResult with canonical values; ``updated_select_items``
            is only set when new items were created

        Raises:
            ValidationError: If the column type is not categorical
        """
        column_type = ColumnType(column_type)
        if not column_type.is_categorical:
            raise ValidationError(f"Cannot reconcile categories for a {column_type.value} column")

        is_multi_select = column_type == ColumnType.MULTI_SELECT
        suggestions = _normalize_suggestions(result, is_multi_select)
        if not is_multi_select:
            suggestions = suggestions[:1]

        items: List[SelectItem] = list(select_items)
        by_name = {item.name.casefold(): item for item in items}
        new_items: List[SelectItem] = []
        final_values: List[str] = []

        for label in suggestions:
            key = label.casefold()
            item = by_name.get(key)
            if item is None:
                item = create_select_item(label, items, self.palette, self.rng, self.id_factory)
                items.append(item)
                new_items.append(item)
                by_name[key] = item
            if item.name not in final_values:
                final_values.append(item.name)

        if new_items:
            LOGGER.info(
                f"Created {len(new_items)} new select item(s): {[item.name for item in new_items]}"
            )

        if is_multi_select:
            value = MultiValue(values=final_values)
        else:
            value = SingleValue(value=final_values[0] if final_values else "")

        return ReconciliationResult(
            value=value,
            new_items=new_items,
            updated_select_items=items if new_items else None,
        )
