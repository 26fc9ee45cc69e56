"""Maps a completed transaction's line items to a blob storage key."""

from collections.abc import Iterable, Mapping

from dropgate.services.webhook.schemas import CustomData, LineItem


PRODUCTS_PREFIX = "products/"
ARCHIVE_SUFFIX = ".zip"


def normalize_key(raw: str | None) -> str | None:
    """Paths with a separator are used verbatim; bare slugs become `products/<slug>.zip`."""

    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    if "/" in value:
        return value
    return f"{PRODUCTS_PREFIX}{value}{ARCHIVE_SUFFIX}"


def _path_of(custom_data: CustomData | None) -> str | None:
    if custom_data is None or not isinstance(custom_data.download_path, str):
        return None
    return normalize_key(custom_data.download_path)


class KeyResolver:
    """Resolve the deliverable for a transaction.

    Lookup order: product metadata, price metadata, transaction metadata, then
    the static price/product table supplied at construction.
    """

    def __init__(self, price_to_key: Mapping[str, str] | None = None) -> None:
        self.price_to_key = dict(price_to_key or {})

    def resolve(
        self,
        line_items: Iterable[LineItem],
        transaction_custom_data: CustomData | None = None,
    ) -> str | None:
        items = list(line_items)

        for item in items:
            key = _path_of(item.product.custom_data if item.product else None)
            if key:
                return key
        for item in items:
            key = _path_of(item.price.custom_data if item.price else None)
            if key:
                return key

        key = _path_of(transaction_custom_data)
        if key:
            return key

        for item in items:
            for ref in (item.price, item.product):
                if ref is not None and ref.id and ref.id in self.price_to_key:
                    key = normalize_key(self.price_to_key[ref.id])
                    if key:
                        return key
        return None
