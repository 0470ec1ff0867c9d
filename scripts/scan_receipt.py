#!/usr/bin/env python3
"""
Parse a receipt's OCR text and optionally check prices online.

Usage:
    python scripts/scan_receipt.py <ocr_text_file> [retailer] [--validate]

Examples:
    python scripts/scan_receipt.py samples/walmart.txt
    python scripts/scan_receipt.py samples/walmart.txt walmart --validate

Price validation needs APIFY_API_TOKEN and/or UPC lookup keys in .env.
"""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from receipt_validator.common.config import get_settings
from receipt_validator.common.logging_config import configure_logging
from receipt_validator.common.schemas.receipt_scanned import RetailerType
from receipt_validator.domain.validation import PriceValidationService
from receipt_validator.parsers.receipt_dispatcher import parse_receipt


def print_progress(fraction: float) -> None:
    print(f"  ... {fraction:.0%} validated")


async def main():
    args = [arg for arg in sys.argv[1:] if not arg.startswith("--")]
    validate = "--validate" in sys.argv

    if not args:
        print("Usage: python scripts/scan_receipt.py <ocr_text_file> [retailer] [--validate]")
        print(f"Retailers: {', '.join(r.value for r in RetailerType)}")
        sys.exit(1)

    settings = get_settings()
    configure_logging(settings.log_level, json_logs=False)

    text_path = Path(args[0])
    retailer = RetailerType(args[1].lower()) if len(args) > 1 else None

    receipt = parse_receipt(text_path.read_text(), retailer)

    print("=" * 80)
    print(f"Store:  {receipt.store_name or '(unknown)'} [{receipt.retailer.value}]")
    print(f"Total:  ${receipt.total_amount}" if receipt.total_amount is not None else "Total:  (not found)")
    print(f"Items:  {len(receipt.items)} (sum ${receipt.items_total})")
    print("=" * 80)

    for item in receipt.items:
        sku = item.sku or "-"
        print(f"  {item.name:<40} {sku:>14}  ${item.price:>8}")

    if receipt.is_empty:
        print("\n⚠ No items found - check the OCR text or enter items manually")
        return

    if not validate:
        return

    service = PriceValidationService.from_settings(settings)
    if not service.is_available:
        print(f"\n⚠ {service.configuration_message}")
        return

    print("\nValidating prices...")
    summary = await service.validate_receipt(receipt, progress=print_progress)

    print()
    for result in summary.results:
        online = f"${result.online_price}" if result.online_price is not None else "N/A"
        print(f"{result.status_icon} {result.item.name}")
        print(f"   Receipt: ${result.item.price}  Online: {online}  "
              f"Diff: {result.formatted_difference} ({result.formatted_percent_difference})")
        print(f"   {result.method_icon} {result.method.value}, confidence {result.confidence.value}")
        print(f"   {result.notes}")

    print()
    print(summary.summary_text)


if __name__ == "__main__":
    asyncio.run(main())
