import csv
import io

DEFAULT_EXPORT_FIELDS = [
    "order_number",
    "status",
    "created_at",
    "pickup_company_name",
    "pickup_company_address",
    "delivery_company_name",
    "delivery_company_address",
    "vin_number",
    "vehicle_year",
    "vehicle_make",
    "vehicle_model",
    "assigned_admin_id",
]


def _header(key: str) -> str:
    return key.replace("_", " ").title()


def rows_to_csv(rows: list[dict], fields: list[str] | None = None) -> str:
    cols = fields or DEFAULT_EXPORT_FIELDS
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow([_header(c) for c in cols])
    for row in rows:
        writer.writerow(["" if row.get(c) is None else row.get(c) for c in cols])
    return buf.getvalue()
