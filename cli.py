import argparse
import datetime
import json
import logging
import os
import sys
from datetime import date as Date
from typing import List, Optional

from dotenv import load_dotenv

from config.receipt_config import ReceiptConfig
from models.upload import ConfirmedReceiptItem, ConfirmReceiptRequest, UploadOptions
from services.errors import ReceiptError
from services.receipt_analyzer import ReceiptAnalyzer
from services.receipt_service import ReceiptService
from storage.json_storage import JsonReceiptStore, JsonStockWriter, load_catalog
from utils.logging_config import setup_logging
from utils.quantity_parser import QuantityUnitParser

logger = logging.getLogger(__name__)


def parse_date(date_str: str) -> Date:
    """Parse a date string in YYYY-MM-DD format."""
    try:
        return datetime.datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        print(f"Error: Invalid date format: {date_str}. Expected format: YYYY-MM-DD")
        sys.exit(1)


def parse_confirmed_item(value: str) -> ConfirmedReceiptItem:
    """Read ITEM_ID:PRODUCT_ID[:QUANTITY[:YYYY-MM-DD]]."""
    parts = value.split(":")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        print(f"Error: Invalid item '{value}'. Expected ITEM_ID:PRODUCT_ID[:QUANTITY[:YYYY-MM-DD]]")
        sys.exit(1)

    try:
        quantity = float(parts[2].replace(",", ".")) if len(parts) > 2 and parts[2] else 1.0
    except ValueError:
        print(f"Error: Invalid quantity in '{value}'")
        sys.exit(1)

    expiration = parse_date(parts[3]) if len(parts) > 3 and parts[3] else None
    return ConfirmedReceiptItem(
        receipt_item_id=parts[0],
        product_id=parts[1],
        quantity=quantity,
        expiration_date=expiration,
    )


def print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def build_service(config: ReceiptConfig, catalog_path: str) -> ReceiptService:
    return ReceiptService(
        receipt_store=JsonReceiptStore(data_dir=config.data_dir),
        catalog=load_catalog(catalog_path),
        stock_writer=JsonStockWriter(data_dir=config.data_dir),
        config=config,
    )


def scan_receipt(config: ReceiptConfig, args: argparse.Namespace) -> None:
    if not os.path.exists(args.image):
        print(f"Error: Image not found: {args.image}")
        sys.exit(1)

    with open(args.image, "rb") as f:
        image_data = f.read()

    service = build_service(config, args.catalog)
    result = service.upload_receipt(image_data, UploadOptions(user_id=args.user, household_id=args.household))

    if args.json:
        print_json(result.model_dump(mode="json"))
        return

    print(f"\n=== Receipt {result.receipt_id} ===")
    print(f"Store: {result.store_name}")
    print(f"Date: {result.receipt_date or '-'}")
    print(f"Total: {result.total_amount if result.total_amount is not None else '-'}")
    print(f"Confidence: {result.confidence:.2f} ({result.status})")
    for item in result.items:
        flag = " [review]" if item.needs_review else ""
        suggestion = f" -> {item.suggested_product.name} ({item.suggested_product.score:.2f})" \
            if item.suggested_product else ""
        print(f"- {item.id}: {item.product_name} x{item.quantity:g} {item.unit.value} "
              f"= {item.total_price:.2f}{flag}{suggestion}")


def parse_text(args: argparse.Namespace) -> None:
    with open(args.text_file, "r", encoding="utf-8") as f:
        text = f.read()

    analyzer = ReceiptAnalyzer()
    if args.stats:
        print_json(analyzer.registry.statistics(analyzer.normalizer.clean_ocr_text(text)))

    parsed = analyzer.analyze(text, args.ocr_confidence)
    print_json(parsed.to_dict())


def analyze_packaging(args: argparse.Namespace) -> None:
    info = QuantityUnitParser().analyze_quantity(args.text)
    if info is None:
        print(f"Unparseable quantity: {args.text}")
        sys.exit(1)
    print_json(info.to_dict())


def list_receipts(config: ReceiptConfig, args: argparse.Namespace) -> None:
    receipts = JsonReceiptStore(data_dir=config.data_dir).find_by_user(args.user, limit=args.limit)
    if not receipts:
        print("No receipts found.")
        return

    print("\n=== Receipts ===")
    for receipt in receipts:
        total = f"{receipt.total_amount:.2f}" if receipt.total_amount is not None else "-"
        print(f"{receipt.id}  {receipt.created_at:%Y-%m-%d %H:%M}  {receipt.store_name}  "
              f"{total}  {len(receipt.items)} items  {receipt.status.value}")


def show_receipt(config: ReceiptConfig, args: argparse.Namespace) -> None:
    receipt = JsonReceiptStore(data_dir=config.data_dir).find_by_id(args.receipt_id, args.user)
    if receipt is None:
        print(f"Error: Receipt {args.receipt_id} not found")
        sys.exit(1)
    print_json(receipt.model_dump(mode="json"))


def confirm_receipt(config: ReceiptConfig, args: argparse.Namespace) -> None:
    request = ConfirmReceiptRequest(
        receipt_id=args.receipt_id,
        user_id=args.user,
        confirmed_items=[parse_confirmed_item(value) for value in args.item],
    )
    result = build_service(config, args.catalog).confirm_receipt(request)
    print(f"Confirmed {result.confirmed_count} item(s) of receipt {result.receipt_id}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Receipt ingestion CLI")
    parser.add_argument("--data-dir", help="Directory for storing receipts and stock (overrides RECEIPT_DATA_DIR)")
    parser.add_argument("--catalog", default="data/catalog.json", help="JSON list of catalog products")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Process a receipt image")
    scan.add_argument("image")
    scan.add_argument("--user", required=True)
    scan.add_argument("--household")
    scan.add_argument("--json", action="store_true", help="Print the full result as JSON")

    text = subparsers.add_parser("parse-text", help="Parse OCR text from a file")
    text.add_argument("text_file")
    text.add_argument("--ocr-confidence", type=float, default=1.0)
    text.add_argument("--stats", action="store_true", help="Print parser applicability scores")

    packaging = subparsers.add_parser("packaging", help="Analyze a packaging quantity string")
    packaging.add_argument("text")

    listing = subparsers.add_parser("list", help="List receipts of a user")
    listing.add_argument("--user", required=True)
    listing.add_argument("--limit", type=int, default=50)

    show = subparsers.add_parser("show", help="Show one receipt")
    show.add_argument("receipt_id")
    show.add_argument("--user", required=True)

    confirm = subparsers.add_parser("confirm", help="Confirm receipt items into stock")
    confirm.add_argument("receipt_id")
    confirm.add_argument("--user", required=True)
    confirm.add_argument("--item", action="append", default=[],
                         help="ITEM_ID:PRODUCT_ID[:QUANTITY[:YYYY-MM-DD]], repeatable")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI function."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(debug_mode=args.debug or os.getenv("RECEIPT_DEBUG", "0") == "1")

    config = ReceiptConfig()
    if args.data_dir:
        config.data_dir = args.data_dir
    try:
        config.validate()
    except ValueError as e:
        print(f"Error: Invalid configuration: {e}")
        sys.exit(1)

    try:
        if args.command == "scan":
            scan_receipt(config, args)
        elif args.command == "parse-text":
            parse_text(args)
        elif args.command == "packaging":
            analyze_packaging(args)
        elif args.command == "list":
            list_receipts(config, args)
        elif args.command == "show":
            show_receipt(config, args)
        elif args.command == "confirm":
            confirm_receipt(config, args)
    except ReceiptError as e:
        logger.debug(f"{type(e).__name__}: {e.details}")
        print(f"Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
