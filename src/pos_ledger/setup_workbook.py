"""Bootstrap a POS Ledger store workbook.

Installed as the ``pos-ledger-setup`` script and imported by the tests. A
fresh workbook holds every collection sheet with its header row, the ``cash``
and ``bank`` accounts at zero, and an admin profile named after the shop.
``--with-sample`` additionally seeds the ``UNGROUPED`` category and one
sample product so the POS has something to sell on first launch.
"""

from __future__ import annotations

import argparse
from decimal import Decimal
from pathlib import Path
from typing import Optional, Sequence
import sys

from . import data_manager, log
from .constants import DEFAULT_CATEGORY_ID
from .models import Category, EntityStore, Product, UserProfile


CONFIG_FILE = data_manager.CONFIG_FILE_NAME


def build_initial_store(shop_name: str, *, with_sample: bool = False) -> EntityStore:
    store = EntityStore(user_profile=UserProfile(name=shop_name.upper(), is_admin=True))
    if with_sample:
        store.categories.append(Category(id=DEFAULT_CATEGORY_ID, name=DEFAULT_CATEGORY_ID))
        store.products.append(
            Product(
                id="SKU-001",
                sku="SKU-001",
                name="SAMPLE PRODUCT 1",
                category_id=DEFAULT_CATEGORY_ID,
                cost=Decimal("50"),
                price=Decimal("100"),
                stock=50,
            )
        )
    return store


def create_store_workbook(
    destination: Path,
    *,
    shop_name: str,
    overwrite: bool = False,
    with_sample: bool = False,
) -> Path:
    """Write a new store workbook to ``destination``.

    Raises:
        FileExistsError: If ``destination`` exists and ``overwrite`` is false.
    """

    destination = Path(destination).expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(f"Store workbook already exists: {destination}")

    data_manager.save_store(build_initial_store(shop_name, with_sample=with_sample), destination)
    log.info("Created store workbook '%s' for '%s'", destination, shop_name)
    return destination


def run_from_config(
    config_path: Path,
    *,
    overwrite: bool = False,
    shop_name: Optional[str] = None,
    with_sample: bool = False,
) -> Path:
    """Create the workbook named by ``[System] DataFile`` in ``config_path``.

    ``shop_name`` overrides ``[System] ShopName`` for the profile.
    """

    config_path = Path(config_path).expanduser().resolve()
    settings = data_manager.parse_settings(data_manager.read_config(config_path), base_path=config_path.parent)
    return create_store_workbook(
        settings.data_file,
        shop_name=shop_name or settings.shop_name,
        overwrite=overwrite,
        with_sample=with_sample,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pos-ledger-setup", description="Create an empty POS Ledger store workbook.")
    parser.add_argument("--config", default=CONFIG_FILE, help="config.ini naming the workbook (default: config.ini)")
    parser.add_argument("--shop-name", default=None, help="Profile name; defaults to [System] ShopName.")
    parser.add_argument("--with-sample", action="store_true", help="Seed a sample category and product.")
    parser.add_argument("--force", action="store_true", help="Replace an existing workbook.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the setup script; returns 0 on success and 1 on any failure."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()
    print("--- POS Ledger Setup ---")
    print(f"Config: {config_path}")

    try:
        output_path = run_from_config(
            config_path,
            overwrite=args.force,
            shop_name=args.shop_name,
            with_sample=args.with_sample,
        )
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}\nPass --force to replace it.")
        return 1
    except (FileNotFoundError, KeyError) as exc:
        print(f"\n[ERROR] Invalid configuration: {exc}")
        return 1
    except OSError as exc:
        log.exception("Store workbook setup failed")
        print(f"\n[ERROR] Could not write the workbook: {exc}")
        return 1

    print(f"\n[SUCCESS] Store workbook ready at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
